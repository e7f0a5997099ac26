"""Booking ORM models."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorslots.core.database import Base, BaseModelMixin, enum_column
from tutorslots.core.enums import BookingStatusEnum, BookingTypeEnum

if TYPE_CHECKING:
    from tutorslots.modules.scheduling.models import RecurringSlot

# Predicate of the uniqueness index; ON CONFLICT must repeat it verbatim.
ACTIVE_BOOKING_PREDICATE = "status <> 'cancelled'"
BOOKING_UNIQUE_COLUMNS = ("slot_id", "session_date", "enrollment_id")


class Booking(BaseModelMixin, Base):
    """Reservation of one occurrence of a recurring slot by one enrollment."""

    __tablename__ = "slot_bookings"
    __table_args__ = (
        Index(
            "uq_slot_bookings_slot_date_enrollment_active",
            *BOOKING_UNIQUE_COLUMNS,
            unique=True,
            postgresql_where=text(ACTIVE_BOOKING_PREDICATE),
        ),
        Index("ix_slot_bookings_slot_id_session_date_status", "slot_id", "session_date", "status"),
        Index("ix_slot_bookings_enrollment_id_status", "enrollment_id", "status"),
    )

    slot_id: Mapped[UUID] = mapped_column(
        ForeignKey("recurring_slots.id", ondelete="RESTRICT"),
        nullable=False,
    )
    enrollment_id: Mapped[UUID] = mapped_column(
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    status: Mapped[BookingStatusEnum] = mapped_column(
        enum_column(BookingStatusEnum, "booking_status_enum"),
        default=BookingStatusEnum.BOOKED,
        nullable=False,
    )
    booking_type: Mapped[BookingTypeEnum] = mapped_column(
        enum_column(BookingTypeEnum, "booking_type_enum"),
        default=BookingTypeEnum.SINGLE,
        nullable=False,
    )
    weekly_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    attendance_marked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    cancelled_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    slot: Mapped["RecurringSlot"] = relationship(back_populates="bookings")
