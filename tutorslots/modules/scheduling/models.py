"""Scheduling ORM models."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorslots.core.database import Base, BaseModelMixin, enum_column
from tutorslots.core.enums import DayOfWeekEnum

if TYPE_CHECKING:
    from tutorslots.modules.booking.models import Booking


class RecurringSlot(BaseModelMixin, Base):
    """Weekly recurring slot of a tutor inside a batch."""

    __tablename__ = "recurring_slots"
    __table_args__ = (
        CheckConstraint("duration_minutes BETWEEN 15 AND 180", name="duration_minutes_range"),
        CheckConstraint("max_occupants BETWEEN 1 AND 10", name="max_occupants_range"),
        CheckConstraint(
            "effective_end_date IS NULL OR effective_end_date > effective_start_date",
            name="effective_range",
        ),
        Index(
            "uq_recurring_slots_tutor_day_time_active",
            "tutor_id",
            "day_of_week",
            "time_of_day",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        Index("ix_recurring_slots_batch_id_is_active", "batch_id", "is_active"),
    )

    batch_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    tutor_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    tutor_name: Mapped[str] = mapped_column(String(128), nullable=False)
    day_of_week: Mapped[DayOfWeekEnum] = mapped_column(
        enum_column(DayOfWeekEnum, "day_of_week_enum"),
        nullable=False,
    )
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    max_occupants: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="Australia/Sydney", nullable=False)
    effective_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    effective_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)

    bookings: Mapped[list[Booking]] = relationship(back_populates="slot")
