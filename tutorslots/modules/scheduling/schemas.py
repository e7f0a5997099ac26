"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from tutorslots.core.enums import DayOfWeekEnum
from tutorslots.modules.scheduling.availability import SlotAvailability, WeekAvailability
from tutorslots.modules.scheduling.calendar import TIME_OF_DAY_PATTERN, is_valid_timezone

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 180
MIN_OCCUPANTS = 1
MAX_OCCUPANTS = 10


def _check_time_of_day(value: str) -> str:
    if not TIME_OF_DAY_PATTERN.match(value):
        raise ValueError("Time slot must be in HH:MM format")
    return value


def _check_timezone(value: str) -> str:
    if not is_valid_timezone(value):
        raise ValueError("Invalid timezone, use an IANA name like 'Australia/Sydney' or 'UTC'")
    return value


TimeOfDay = Annotated[str, AfterValidator(_check_time_of_day)]
TimezoneName = Annotated[str, AfterValidator(_check_timezone)]


class SlotCreate(BaseModel):
    """Create recurring slot request."""

    tutor_id: UUID
    day_of_week: DayOfWeekEnum
    time_of_day: TimeOfDay = Field(examples=["10:00"])
    duration_minutes: int = Field(default=60, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    max_occupants: int = Field(default=4, ge=MIN_OCCUPANTS, le=MAX_OCCUPANTS)
    timezone: TimezoneName | None = None
    effective_start_date: date | None = None
    effective_end_date: date | None = None

    @model_validator(mode="after")
    def validate_effective_range(self) -> "SlotCreate":
        if (
            self.effective_start_date is not None
            and self.effective_end_date is not None
            and self.effective_end_date <= self.effective_start_date
        ):
            raise ValueError("Effective end date must be after start date")
        return self


class SlotUpdate(BaseModel):
    """Partial update of a recurring slot."""

    tutor_id: UUID | None = None
    day_of_week: DayOfWeekEnum | None = None
    time_of_day: TimeOfDay | None = None
    duration_minutes: int | None = Field(default=None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    max_occupants: int | None = Field(default=None, ge=MIN_OCCUPANTS, le=MAX_OCCUPANTS)
    timezone: TimezoneName | None = None
    effective_start_date: date | None = None
    effective_end_date: date | None = None


class SlotRead(BaseModel):
    """Recurring slot response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    batch_id: UUID
    tutor_id: UUID
    tutor_name: str
    day_of_week: DayOfWeekEnum
    time_of_day: str
    duration_minutes: int
    max_occupants: int
    timezone: str
    effective_start_date: date
    effective_end_date: date | None
    is_active: bool
    created_by: UUID
    created_at: datetime
    updated_at: datetime


class SlotListRead(BaseModel):
    slots: list[SlotRead]
    slots_by_day: dict[DayOfWeekEnum, list[SlotRead]]


class SlotDeactivateRead(BaseModel):
    slot: SlotRead
    cancelled_bookings: int


class OccurrenceRead(BaseModel):
    starts_at: datetime
    local_date: date
    local_time: str
    day_of_week: DayOfWeekEnum
    timezone: str
    is_in_past: bool


class SlotAvailabilityRead(BaseModel):
    slot: SlotRead
    occurrence: OccurrenceRead
    booked_count: int
    available_spots: int
    is_available: bool
    reason: str | None = None

    @classmethod
    def from_availability(cls, item: SlotAvailability) -> "SlotAvailabilityRead":
        occurrence = item.occurrence
        return cls(
            slot=SlotRead.model_validate(item.slot),
            occurrence=OccurrenceRead(
                starts_at=occurrence.starts_at,
                local_date=occurrence.local_date,
                local_time=occurrence.local_time,
                day_of_week=occurrence.day_of_week,
                timezone=occurrence.timezone,
                is_in_past=occurrence.is_in_past,
            ),
            booked_count=item.booked_count,
            available_spots=item.available_spots,
            is_available=item.is_available,
            reason=item.eligibility.reason,
        )


class DayAvailabilityRead(BaseModel):
    date: date
    slots: list[SlotAvailabilityRead]


class WeekAvailabilityRead(BaseModel):
    """Week of occurrences, flat and grouped by day."""

    timezone: str
    start_date: date
    end_date: date
    week_dates: dict[DayOfWeekEnum, date]
    slots: list[SlotAvailabilityRead]
    slots_by_day: dict[DayOfWeekEnum, DayAvailabilityRead]

    @classmethod
    def from_view(cls, view: WeekAvailability) -> "WeekAvailabilityRead":
        return cls(
            timezone=view.timezone,
            start_date=view.week.start_date,
            end_date=view.week.end_date,
            week_dates=view.week.dates,
            slots=[SlotAvailabilityRead.from_availability(item) for item in view.slots],
            slots_by_day={
                day: DayAvailabilityRead(
                    date=group.date,
                    slots=[SlotAvailabilityRead.from_availability(item) for item in group.slots],
                )
                for day, group in view.by_day.items()
            },
        )
