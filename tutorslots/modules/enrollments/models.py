"""Enrollment ORM models."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from tutorslots.core.database import Base, BaseModelMixin, enum_column
from tutorslots.core.enums import EnrollmentStatusEnum


class Enrollment(BaseModelMixin, Base):
    """Student's time-boxed access to the slots of a batch."""

    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint("sessions_used >= 0", name="sessions_used_non_negative"),
        Index("ix_enrollments_batch_id_student_id", "batch_id", "student_id", unique=True),
    )

    batch_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    student_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String(128), nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[EnrollmentStatusEnum] = mapped_column(
        enum_column(EnrollmentStatusEnum, "enrollment_status_enum"),
        default=EnrollmentStatusEnum.ACTIVE,
        nullable=False,
    )
    sessions_allowed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sessions_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
