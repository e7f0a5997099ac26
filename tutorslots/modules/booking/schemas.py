"""Booking schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tutorslots.core.enums import BookingStatusEnum, BookingTypeEnum


class BookingCreateRequest(BaseModel):
    """Book one occurrence, or one occurrence per week up to weekly_end_date."""

    slot_id: UUID
    enrollment_id: UUID
    session_date: date
    booking_type: BookingTypeEnum = BookingTypeEnum.SINGLE
    weekly_end_date: date | None = None

    @model_validator(mode="after")
    def validate_weekly_end_date(self) -> "BookingCreateRequest":
        if self.booking_type == BookingTypeEnum.WEEKLY:
            if self.weekly_end_date is None:
                raise ValueError("Weekly booking end date is required for weekly bookings")
            if self.weekly_end_date < self.session_date:
                raise ValueError("Weekly booking end date must not be before the session date")
        return self


class BookingCancelRequest(BaseModel):
    """Cancel booking request."""

    reason: str | None = Field(default=None, max_length=200)


class BookingCompleteRequest(BaseModel):
    """Mark booking as attended."""

    notes: str | None = Field(default=None, max_length=500)
    attendance_marked: bool = True


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slot_id: UUID
    enrollment_id: UUID
    session_date: date
    starts_at: datetime
    status: BookingStatusEnum
    booking_type: BookingTypeEnum
    weekly_end_date: date | None
    attendance_marked: bool
    notes: str | None
    cancelled_by: UUID | None
    cancellation_reason: str | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class WeeklyBookingFailure(BaseModel):
    session_date: date
    reason: str


class WeeklyBookingRead(BaseModel):
    """Per-date summary of a weekly package request."""

    booked: list[BookingRead]
    skipped: list[date]
    failed: list[WeeklyBookingFailure]
    clamped_end_date: date
    clamp_note: str | None = None
    warning: bool
    message: str


class BookingCreateRead(BaseModel):
    """Response of POST /booking; exactly one of booking/weekly is set."""

    booking_type: BookingTypeEnum
    booking: BookingRead | None = None
    weekly: WeeklyBookingRead | None = None
    message: str
