"""Per-occurrence capacity and availability views.

Capacity is always recomputed from live booking status; nothing here keeps a
counter or touches storage.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

from tutorslots.core.enums import CAPACITY_STATUSES, DayOfWeekEnum
from tutorslots.modules.scheduling.calendar import Occurrence, WeekRange, resolve_occurrence, week_date_range
from tutorslots.modules.scheduling.eligibility import BookingPolicy, EligibilityResult, is_bookable


@dataclass(frozen=True, slots=True)
class SlotAvailability:
    slot: Any
    occurrence: Occurrence
    eligibility: EligibilityResult
    booked_count: int
    available_spots: int
    is_available: bool


@dataclass(slots=True)
class DayAvailability:
    date: date
    slots: list[SlotAvailability] = field(default_factory=list)


@dataclass(slots=True)
class WeekAvailability:
    timezone: str
    week: WeekRange
    slots: list[SlotAvailability]
    by_day: dict[DayOfWeekEnum, DayAvailability]


def count_booked(bookings: Iterable[Any], slot_id: UUID, local_date: date) -> int:
    """Count bookings holding a spot of the occurrence (slot_id, local_date)."""
    return sum(
        1
        for booking in bookings
        if booking.slot_id == slot_id
        and booking.session_date == local_date
        and booking.status in CAPACITY_STATUSES
    )


def build_availability(
    slot: Any,
    occurrence: Occurrence,
    eligibility: EligibilityResult,
    bookings: Iterable[Any],
) -> SlotAvailability:
    booked_count = count_booked(bookings, slot.id, occurrence.local_date)
    available_spots = max(slot.max_occupants - booked_count, 0)
    return SlotAvailability(
        slot=slot,
        occurrence=occurrence,
        eligibility=eligibility,
        booked_count=booked_count,
        available_spots=available_spots,
        is_available=available_spots > 0 and eligibility.ok and not occurrence.is_in_past,
    )


def group_by_day(items: Iterable[SlotAvailability]) -> dict[DayOfWeekEnum, DayAvailability]:
    """Group availability by weekday, Monday first, slots ordered by local time."""
    grouped: dict[DayOfWeekEnum, DayAvailability] = {}
    ordered = sorted(items, key=lambda item: (item.occurrence.day_of_week.iso_weekday, item.occurrence.local_time))
    for item in ordered:
        day = item.occurrence.day_of_week
        if day not in grouped:
            grouped[day] = DayAvailability(date=item.occurrence.local_date)
        grouped[day].slots.append(item)
    return grouped


def build_week_view(
    slots: Sequence[Any],
    bookings: Sequence[Any],
    week_start: date | datetime,
    *,
    now: datetime,
    policy: BookingPolicy,
    timezone: str,
    timezone_override: str | None = None,
) -> WeekAvailability:
    """Resolve, evaluate and count every slot for one week."""
    items: list[SlotAvailability] = []
    for slot in slots:
        occurrence = resolve_occurrence(slot, week_start, now=now, timezone_override=timezone_override)
        eligibility = is_bookable(slot, occurrence, policy, now=now)
        items.append(build_availability(slot, occurrence, eligibility, bookings))

    by_day = group_by_day(items)
    flat = [item for day in by_day.values() for item in day.slots]
    return WeekAvailability(
        timezone=timezone,
        week=week_date_range(week_start, timezone),
        slots=flat,
        by_day=by_day,
    )
