"""Booking eligibility rules for resolved occurrences."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol

from tutorslots.core.config import Settings, get_settings
from tutorslots.modules.scheduling.calendar import Occurrence, current_date
from tutorslots.shared.utils import ensure_utc


class EffectivePattern(Protocol):
    timezone: str
    effective_start_date: date
    effective_end_date: date | None


@dataclass(frozen=True, slots=True)
class BookingPolicy:
    """Notice windows applied when creating and cancelling bookings."""

    min_advance_minutes: int = 60
    slot_cancel_notice_hours: int = 12
    # One-off sessions are cancelled by the session layer, not by this engine.
    session_cancel_notice_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BookingPolicy":
        settings = settings or get_settings()
        return cls(
            min_advance_minutes=settings.booking_min_advance_minutes,
            slot_cancel_notice_hours=settings.slot_cancel_notice_hours,
            session_cancel_notice_hours=settings.session_cancel_notice_hours,
        )


@dataclass(frozen=True, slots=True)
class EligibilityResult:
    ok: bool
    reason: str | None = None


ELIGIBLE = EligibilityResult(ok=True)


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def _advance_notice_reason(minutes: int) -> str:
    if minutes % 60 == 0:
        return f"Must book at least {_plural(minutes // 60, 'hour')} in advance"
    return f"Must book at least {_plural(minutes, 'minute')} in advance"


def is_bookable(
    slot: EffectivePattern,
    occurrence: Occurrence,
    policy: BookingPolicy,
    *,
    now: datetime,
) -> EligibilityResult:
    """Decide whether an occurrence can be booked right now.

    The effective range gates the recurrence as a whole: it is compared with
    today's date in the slot timezone, not with the occurrence date.
    """
    now = ensure_utc(now)

    if occurrence.starts_at < now:
        return EligibilityResult(ok=False, reason="Slot is in the past")

    if occurrence.starts_at - now < timedelta(minutes=policy.min_advance_minutes):
        return EligibilityResult(ok=False, reason=_advance_notice_reason(policy.min_advance_minutes))

    today = current_date(slot.timezone, now)
    if today < slot.effective_start_date:
        return EligibilityResult(ok=False, reason="Slot not yet effective")
    if slot.effective_end_date is not None and today > slot.effective_end_date:
        return EligibilityResult(ok=False, reason="Slot no longer effective")

    return ELIGIBLE


def can_self_cancel(starts_at: datetime, policy: BookingPolicy, *, now: datetime) -> EligibilityResult:
    """Notice window rule for cancellations made by the enrollment owner."""
    notice = timedelta(hours=policy.slot_cancel_notice_hours)
    if ensure_utc(starts_at) - ensure_utc(now) < notice:
        return EligibilityResult(
            ok=False,
            reason=(
                "Cannot cancel booking less than "
                f"{_plural(policy.slot_cancel_notice_hours, 'hour')} before the session"
            ),
        )
    return ELIGIBLE
