"""Scheduling business logic layer."""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorslots.core.config import Settings, get_settings
from tutorslots.core.database import get_db_session
from tutorslots.core.enums import DayOfWeekEnum
from tutorslots.modules.booking.repository import BookingRepository
from tutorslots.modules.identity.schemas import Actor
from tutorslots.modules.scheduling.availability import WeekAvailability, build_week_view
from tutorslots.modules.scheduling.calendar import current_date, is_valid_timezone, week_date_range
from tutorslots.modules.scheduling.eligibility import BookingPolicy
from tutorslots.modules.scheduling.models import RecurringSlot
from tutorslots.modules.scheduling.repository import SchedulingRepository
from tutorslots.modules.scheduling.schemas import SlotCreate, SlotUpdate
from tutorslots.modules.tutors.models import TutorProfile
from tutorslots.modules.tutors.repository import TutorRepository
from tutorslots.shared.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from tutorslots.shared.utils import utc_now

logger = logging.getLogger(__name__)

# Fields that decide where each occurrence falls.
SCHEDULE_FIELDS = ("day_of_week", "time_of_day", "timezone")


def group_slots_by_day(slots: list[RecurringSlot]) -> dict[DayOfWeekEnum, list[RecurringSlot]]:
    """Group slot definitions by weekday, Monday first, each day ordered by time."""
    grouped: dict[DayOfWeekEnum, list[RecurringSlot]] = {}
    for slot in sorted(slots, key=lambda item: (DayOfWeekEnum(item.day_of_week).iso_weekday, item.time_of_day)):
        grouped.setdefault(DayOfWeekEnum(slot.day_of_week), []).append(slot)
    return grouped


class SchedulingService:
    """Recurring slot definitions and weekly availability."""

    def __init__(
        self,
        repository: SchedulingRepository,
        tutor_repository: TutorRepository,
        booking_repository: BookingRepository,
        settings: Settings | None = None,
    ) -> None:
        self.repository = repository
        self.tutor_repository = tutor_repository
        self.booking_repository = booking_repository
        self.settings = settings or get_settings()
        self.policy = BookingPolicy.from_settings(self.settings)

    @staticmethod
    def _ensure_admin(actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise ForbiddenException(f"Only admin can {action} slots")

    async def _get_active_tutor(self, tutor_id: UUID) -> TutorProfile:
        tutor = await self.tutor_repository.get_tutor_by_user_id(tutor_id)
        if tutor is None or not tutor.is_active:
            raise ValidationException("Invalid tutor ID")
        return tutor

    def _ensure_allowed_day(self, day_of_week: DayOfWeekEnum) -> None:
        if day_of_week not in self.settings.slot_allowed_days:
            allowed = ", ".join(self.settings.slot_allowed_days)
            raise ValidationException(f"Slots cannot be scheduled on {day_of_week}. Allowed days: {allowed}")

    async def _ensure_unique(
        self,
        tutor_id: UUID,
        tutor_name: str,
        day_of_week: DayOfWeekEnum,
        time_of_day: str,
        exclude_slot_id: UUID | None = None,
    ) -> None:
        existing = await self.repository.find_active_slot(tutor_id, day_of_week, time_of_day, exclude_slot_id)
        if existing is not None:
            raise ConflictException(f"Tutor {tutor_name} already has a slot on {day_of_week} at {time_of_day}")

    async def create_slot(self, batch_id: UUID, payload: SlotCreate, actor: Actor) -> RecurringSlot:
        """Create recurring slot in a batch (admin only)."""
        self._ensure_admin(actor, "create")

        tutor = await self._get_active_tutor(payload.tutor_id)
        self._ensure_allowed_day(payload.day_of_week)

        timezone = payload.timezone or self.settings.default_slot_timezone
        effective_start_date = payload.effective_start_date or current_date(timezone, utc_now())
        if payload.effective_end_date is not None and payload.effective_end_date <= effective_start_date:
            raise ValidationException("Effective end date must be after start date")

        await self._ensure_unique(tutor.user_id, tutor.display_name, payload.day_of_week, payload.time_of_day)

        try:
            slot = await self.repository.create_slot(
                batch_id=batch_id,
                tutor_id=tutor.user_id,
                tutor_name=tutor.display_name,
                day_of_week=payload.day_of_week,
                time_of_day=payload.time_of_day,
                duration_minutes=payload.duration_minutes,
                max_occupants=payload.max_occupants,
                timezone=timezone,
                effective_start_date=effective_start_date,
                effective_end_date=payload.effective_end_date,
                created_by=actor.id,
            )
        except IntegrityError as exc:
            raise ConflictException(
                f"Tutor {tutor.display_name} already has a slot on {payload.day_of_week} at {payload.time_of_day}",
            ) from exc

        logger.info(
            "Slot %s created for tutor %s on %s at %s (%s)",
            slot.id,
            tutor.user_id,
            slot.day_of_week,
            slot.time_of_day,
            slot.timezone,
        )
        return slot

    async def update_slot(self, slot_id: UUID, payload: SlotUpdate, actor: Actor) -> RecurringSlot:
        """Apply partial update to a slot definition (admin only)."""
        self._ensure_admin(actor, "update")

        slot = await self.repository.get_slot_by_id(slot_id)
        if slot is None:
            raise NotFoundException("Slot not found")

        changes = payload.model_dump(exclude_unset=True)
        # Only the end date may be cleared; other explicit nulls are ignored.
        changes = {
            key: value for key, value in changes.items() if value is not None or key == "effective_end_date"
        }

        tutor_name = slot.tutor_name
        if "tutor_id" in changes and changes["tutor_id"] != slot.tutor_id:
            tutor = await self._get_active_tutor(changes["tutor_id"])
            tutor_name = tutor.display_name
            changes["tutor_name"] = tutor_name
        if "day_of_week" in changes:
            self._ensure_allowed_day(changes["day_of_week"])

        start = changes.get("effective_start_date", slot.effective_start_date)
        end = changes.get("effective_end_date", slot.effective_end_date)
        if end is not None and end <= start:
            raise ValidationException("Effective end date must be after start date")

        tutor_id = changes.get("tutor_id", slot.tutor_id)
        day_of_week = changes.get("day_of_week", slot.day_of_week)
        time_of_day = changes.get("time_of_day", slot.time_of_day)
        if slot.is_active:
            await self._ensure_unique(tutor_id, tutor_name, day_of_week, time_of_day, exclude_slot_id=slot.id)

        # Booked occurrences store the resolved date and instant.
        moved = [key for key in SCHEDULE_FIELDS if key in changes and changes[key] != getattr(slot, key)]
        if moved:
            future_bookings = await self.booking_repository.count_future_bookings(slot.id, utc_now())
            if future_bookings:
                raise ConflictException(
                    f"Cannot change {', '.join(moved)} of a slot with {future_bookings} future booking(s). "
                    "Cancel them or create a new slot.",
                    details={"future_bookings": future_bookings},
                )

        for key, value in changes.items():
            setattr(slot, key, value)

        try:
            await self.repository.save(slot)
        except IntegrityError as exc:
            raise ConflictException(
                f"Tutor {tutor_name} already has a slot on {day_of_week} at {time_of_day}",
            ) from exc

        logger.info("Slot %s updated: %s", slot.id, sorted(changes))
        return slot

    async def list_slots(
        self,
        batch_id: UUID,
        is_active: bool = True,
    ) -> tuple[list[RecurringSlot], dict[DayOfWeekEnum, list[RecurringSlot]]]:
        """List slots of a batch, flat and grouped by weekday."""
        slots = await self.repository.list_slots(batch_id, is_active=is_active)
        grouped = group_slots_by_day(slots)
        flat = [slot for day_slots in grouped.values() for slot in day_slots]
        return flat, grouped

    async def get_week_availability(
        self,
        batch_id: UUID,
        week: date | None = None,
        timezone: str | None = None,
    ) -> WeekAvailability:
        """Resolve every active slot of a batch onto one week with live capacity.

        Without ``week`` the current ISO week in the requested timezone is used.
        A requested timezone also overrides each slot's own timezone.
        """
        if timezone is not None and not is_valid_timezone(timezone):
            raise ValidationException("Invalid timezone, use an IANA name like 'Australia/Sydney' or 'UTC'")

        now = utc_now()
        view_timezone = timezone or self.settings.default_slot_timezone
        week_start = week or current_date(view_timezone, now)
        week_range = week_date_range(week_start, view_timezone)

        slots = await self.repository.list_active_slots(batch_id)
        bookings = await self.booking_repository.list_bookings_for_slots(
            [slot.id for slot in slots],
            week_range.start_date,
            week_range.end_date,
        )
        return build_week_view(
            slots,
            bookings,
            week_start,
            now=now,
            policy=self.policy,
            timezone=view_timezone,
            timezone_override=timezone,
        )


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(
        repository=SchedulingRepository(session),
        tutor_repository=TutorRepository(session),
        booking_repository=BookingRepository(session),
    )
