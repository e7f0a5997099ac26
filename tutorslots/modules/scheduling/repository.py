"""Scheduling repository layer."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorslots.core.enums import DayOfWeekEnum
from tutorslots.modules.scheduling.models import RecurringSlot


class SchedulingRepository:
    """DB access for recurring slot definitions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_slot(
        self,
        *,
        batch_id: UUID,
        tutor_id: UUID,
        tutor_name: str,
        day_of_week: DayOfWeekEnum,
        time_of_day: str,
        duration_minutes: int,
        max_occupants: int,
        timezone: str,
        effective_start_date: date,
        effective_end_date: date | None,
        created_by: UUID,
    ) -> RecurringSlot:
        slot = RecurringSlot(
            batch_id=batch_id,
            tutor_id=tutor_id,
            tutor_name=tutor_name,
            day_of_week=day_of_week,
            time_of_day=time_of_day,
            duration_minutes=duration_minutes,
            max_occupants=max_occupants,
            timezone=timezone,
            effective_start_date=effective_start_date,
            effective_end_date=effective_end_date,
            is_active=True,
            created_by=created_by,
        )
        async with self.session.begin_nested():
            self.session.add(slot)
            await self.session.flush()
        return slot

    async def get_slot_by_id(self, slot_id: UUID) -> RecurringSlot | None:
        stmt = select(RecurringSlot).where(RecurringSlot.id == slot_id)
        return await self.session.scalar(stmt)

    async def lock_slot(self, slot_id: UUID) -> RecurringSlot | None:
        """Load slot holding its row lock until the transaction ends."""
        stmt = select(RecurringSlot).where(RecurringSlot.id == slot_id).with_for_update()
        return await self.session.scalar(stmt)

    async def list_slots(self, batch_id: UUID, is_active: bool = True) -> list[RecurringSlot]:
        stmt: Select[tuple[RecurringSlot]] = (
            select(RecurringSlot)
            .where(RecurringSlot.batch_id == batch_id, RecurringSlot.is_active.is_(is_active))
            .order_by(RecurringSlot.day_of_week, RecurringSlot.time_of_day)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_active_slots(self, batch_id: UUID) -> list[RecurringSlot]:
        return await self.list_slots(batch_id, is_active=True)

    async def find_active_slot(
        self,
        tutor_id: UUID,
        day_of_week: DayOfWeekEnum,
        time_of_day: str,
        exclude_slot_id: UUID | None = None,
    ) -> RecurringSlot | None:
        stmt = select(RecurringSlot).where(
            RecurringSlot.tutor_id == tutor_id,
            RecurringSlot.day_of_week == day_of_week,
            RecurringSlot.time_of_day == time_of_day,
            RecurringSlot.is_active.is_(True),
        )
        if exclude_slot_id is not None:
            stmt = stmt.where(RecurringSlot.id != exclude_slot_id)
        return await self.session.scalar(stmt.limit(1))

    async def save(self, slot: RecurringSlot) -> RecurringSlot:
        async with self.session.begin_nested():
            await self.session.flush()
        return slot

    async def set_slot_active(self, slot: RecurringSlot, is_active: bool) -> RecurringSlot:
        slot.is_active = is_active
        await self.session.flush()
        return slot
