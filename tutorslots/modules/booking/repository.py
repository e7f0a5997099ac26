"""Booking repository layer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction
from sqlalchemy.orm import selectinload

from tutorslots.core.enums import CAPACITY_STATUSES, BookingStatusEnum, BookingTypeEnum
from tutorslots.modules.booking.models import ACTIVE_BOOKING_PREDICATE, BOOKING_UNIQUE_COLUMNS, Booking
from tutorslots.modules.scheduling.models import RecurringSlot


class BookingInsertOutcome(StrEnum):
    CREATED = "created"
    ALREADY_BOOKED = "already_booked"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    SLOT_UNAVAILABLE = "slot_unavailable"


@dataclass(slots=True)
class BookingInsertResult:
    outcome: BookingInsertOutcome
    booking: Booking | None = None


@dataclass(slots=True)
class BookingFilter:
    """Query parameters for booking listings. Unset fields do not filter."""

    status: BookingStatusEnum | None = None
    slot_id: UUID | None = None
    batch_id: UUID | None = None
    tutor_id: UUID | None = None
    enrollment_id: UUID | None = None
    enrollment_ids: Sequence[UUID] | None = None
    date_from: date | None = None
    date_to: date | None = None
    starts_after: datetime | None = None
    oldest_first: bool = False


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def savepoint(self) -> AsyncSessionTransaction:
        """Nested transaction; writes made inside it roll back together on error."""
        return self.session.begin_nested()

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = select(Booking).options(selectinload(Booking.slot)).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def count_bookings(
        self,
        slot_id: UUID,
        session_date: date,
        statuses: Sequence[BookingStatusEnum] = CAPACITY_STATUSES,
    ) -> int:
        stmt = select(func.count()).select_from(Booking).where(
            Booking.slot_id == slot_id,
            Booking.session_date == session_date,
            Booking.status.in_(statuses),
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def insert_booking_if_absent(
        self,
        *,
        slot_id: UUID,
        session_date: date,
        enrollment_id: UUID,
        starts_at: datetime,
        booking_type: BookingTypeEnum,
        weekly_end_date: date | None,
    ) -> BookingInsertResult:
        """Insert a booking unless it duplicates one or overfills the occurrence.

        The slot row is locked for the rest of the transaction, so concurrent
        writers for the same slot count capacity one after another. The partial
        unique index is the final guard against duplicates.
        """
        async with self.session.begin_nested():
            slot = await self.session.scalar(
                select(RecurringSlot).where(RecurringSlot.id == slot_id).with_for_update(),
            )
            if slot is None or not slot.is_active:
                return BookingInsertResult(BookingInsertOutcome.SLOT_UNAVAILABLE)

            existing_id = await self.session.scalar(
                select(Booking.id).where(
                    Booking.slot_id == slot_id,
                    Booking.session_date == session_date,
                    Booking.enrollment_id == enrollment_id,
                    Booking.status != BookingStatusEnum.CANCELLED,
                ),
            )
            if existing_id is not None:
                return BookingInsertResult(BookingInsertOutcome.ALREADY_BOOKED)

            if await self.count_bookings(slot_id, session_date) >= slot.max_occupants:
                return BookingInsertResult(BookingInsertOutcome.CAPACITY_EXCEEDED)

            stmt = (
                pg_insert(Booking)
                .values(
                    slot_id=slot_id,
                    session_date=session_date,
                    enrollment_id=enrollment_id,
                    starts_at=starts_at,
                    status=BookingStatusEnum.BOOKED,
                    booking_type=booking_type,
                    weekly_end_date=weekly_end_date,
                )
                .on_conflict_do_nothing(
                    index_elements=list(BOOKING_UNIQUE_COLUMNS),
                    index_where=text(ACTIVE_BOOKING_PREDICATE),
                )
                .returning(Booking.id)
            )
            booking_id = await self.session.scalar(stmt)

        if booking_id is None:
            return BookingInsertResult(BookingInsertOutcome.ALREADY_BOOKED)
        booking = await self.get_booking_by_id(booking_id)
        return BookingInsertResult(BookingInsertOutcome.CREATED, booking)

    async def update_booking_status(
        self,
        booking: Booking,
        status: BookingStatusEnum,
        **values: Any,
    ) -> bool:
        """Move a booking out of BOOKED. Returns False if it already left that state."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatusEnum.BOOKED)
            .values(status=status, **values)
            .returning(Booking.id)
            .execution_options(synchronize_session=False)
        )
        if await self.session.scalar(stmt) is None:
            return False
        await self.session.refresh(booking, attribute_names=["status", "updated_at", *values])
        return True

    async def count_future_bookings(self, slot_id: UUID, now: datetime) -> int:
        stmt = select(func.count()).select_from(Booking).where(
            Booking.slot_id == slot_id,
            Booking.status == BookingStatusEnum.BOOKED,
            Booking.starts_at > now,
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def cancel_future_bookings(
        self,
        slot_id: UUID,
        now: datetime,
        *,
        cancelled_by: UUID,
        reason: str,
    ) -> list[Booking]:
        stmt = (
            update(Booking)
            .where(
                Booking.slot_id == slot_id,
                Booking.status == BookingStatusEnum.BOOKED,
                Booking.starts_at > now,
            )
            .values(
                status=BookingStatusEnum.CANCELLED,
                cancelled_by=cancelled_by,
                cancellation_reason=reason,
                cancelled_at=now,
            )
            .returning(Booking)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_bookings(
        self,
        booking_filter: BookingFilter,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking)

        if booking_filter.status is not None:
            base_stmt = base_stmt.where(Booking.status == booking_filter.status)
        if booking_filter.slot_id is not None:
            base_stmt = base_stmt.where(Booking.slot_id == booking_filter.slot_id)
        if booking_filter.batch_id is not None or booking_filter.tutor_id is not None:
            base_stmt = base_stmt.join(RecurringSlot, RecurringSlot.id == Booking.slot_id)
        if booking_filter.batch_id is not None:
            base_stmt = base_stmt.where(RecurringSlot.batch_id == booking_filter.batch_id)
        if booking_filter.tutor_id is not None:
            base_stmt = base_stmt.where(RecurringSlot.tutor_id == booking_filter.tutor_id)
        if booking_filter.enrollment_id is not None:
            base_stmt = base_stmt.where(Booking.enrollment_id == booking_filter.enrollment_id)
        if booking_filter.enrollment_ids is not None:
            base_stmt = base_stmt.where(Booking.enrollment_id.in_(booking_filter.enrollment_ids))
        if booking_filter.date_from is not None:
            base_stmt = base_stmt.where(Booking.session_date >= booking_filter.date_from)
        if booking_filter.date_to is not None:
            base_stmt = base_stmt.where(Booking.session_date <= booking_filter.date_to)
        if booking_filter.starts_after is not None:
            base_stmt = base_stmt.where(Booking.starts_at >= booking_filter.starts_after)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        order = Booking.starts_at.asc() if booking_filter.oldest_first else Booking.starts_at.desc()
        stmt = base_stmt.order_by(order).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def list_bookings_for_slots(
        self,
        slot_ids: Sequence[UUID],
        date_from: date,
        date_to: date,
    ) -> list[Booking]:
        """Capacity-holding bookings of several slots in a date range."""
        if not slot_ids:
            return []
        stmt = select(Booking).where(
            Booking.slot_id.in_(slot_ids),
            Booking.session_date >= date_from,
            Booking.session_date <= date_to,
            Booking.status.in_(CAPACITY_STATUSES),
        )
        return list((await self.session.scalars(stmt)).all())
