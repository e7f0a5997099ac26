"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """Caller roles supplied by the identity provider."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class DayOfWeekEnum(StrEnum):
    """Weekday of a recurring slot, in ISO order (Monday first)."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def iso_weekday(self) -> int:
        """ISO weekday number, Monday = 1 .. Sunday = 7."""
        return list(DayOfWeekEnum).index(self) + 1

    @classmethod
    def from_date(cls, value) -> "DayOfWeekEnum":
        """Return weekday of a date or datetime."""
        return list(cls)[value.isoweekday() - 1]


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class BookingTypeEnum(StrEnum):
    """Single occurrence or weekly package booking."""

    SINGLE = "single"
    WEEKLY = "weekly"


class EnrollmentStatusEnum(StrEnum):
    """Student enrollment status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


# Statuses that occupy a spot of an occurrence.
CAPACITY_STATUSES = (BookingStatusEnum.BOOKED, BookingStatusEnum.COMPLETED)
