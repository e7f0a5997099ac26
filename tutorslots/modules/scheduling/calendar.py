"""Calendar arithmetic for weekly recurring slots.

Every function here is pure. The current instant is always passed in by the
caller, so the same inputs resolve to the same occurrence every time. Stored
bookings are keyed by the *local* calendar date of an occurrence, which is why
``Occurrence`` carries the local date next to the absolute instant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

import pytz

from tutorslots.core.enums import DayOfWeekEnum
from tutorslots.shared.utils import ensure_utc

TIME_OF_DAY_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


class RecurringPattern(Protocol):
    """Fields of a slot definition needed to resolve occurrences."""

    day_of_week: DayOfWeekEnum | str
    time_of_day: str
    timezone: str


@dataclass(frozen=True, slots=True)
class Occurrence:
    """One concrete calendar instance of a recurring slot."""

    starts_at: datetime
    local_start: datetime
    local_date: date
    local_time: str
    day_of_week: DayOfWeekEnum
    timezone: str
    is_in_past: bool

    @property
    def local_date_string(self) -> str:
        return self.local_date.isoformat()


@dataclass(frozen=True, slots=True)
class WeekRange:
    """Monday..Sunday of one ISO week in a timezone."""

    start_date: date
    end_date: date
    dates: dict[DayOfWeekEnum, date]


def is_valid_timezone(name: str) -> bool:
    """Return True if name is in the IANA timezone database."""
    return isinstance(name, str) and name in pytz.all_timezones_set


def get_timezone(name: str) -> pytz.BaseTzInfo:
    """Return tzinfo for an IANA name, raising ValueError when unknown."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def parse_time_of_day(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string."""
    if not isinstance(value, str) or not TIME_OF_DAY_PATTERN.match(value):
        raise ValueError("Time slot must be in HH:MM format")
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


def localize(local_date: date, time_of_day: time, timezone: str) -> datetime:
    """Attach timezone to a wall-clock date and time.

    Ambiguous wall times (DST fall-back) resolve to the first occurrence;
    wall times inside a DST gap are moved forward by the length of the gap.
    """
    tz = get_timezone(timezone)
    naive = datetime.combine(local_date, time_of_day)
    try:
        return tz.localize(naive, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        return tz.localize(naive, is_dst=True)
    except pytz.exceptions.NonExistentTimeError:
        return tz.normalize(tz.localize(naive, is_dst=False))


def current_date(timezone: str, now: datetime) -> date:
    """Calendar date of ``now`` in a timezone."""
    return ensure_utc(now).astimezone(get_timezone(timezone)).date()


def convert_timezone(value: datetime, from_timezone: str, to_timezone: str) -> datetime:
    """Convert a datetime between timezones; naive values are read in ``from_timezone``."""
    if value.tzinfo is None:
        value = get_timezone(from_timezone).localize(value)
    return value.astimezone(get_timezone(to_timezone))


def _as_local_date(value: date | datetime, timezone: str) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(get_timezone(timezone)).date()
    return value


def iso_week_start(value: date) -> date:
    """Monday of the ISO week containing value."""
    return value - timedelta(days=value.weekday())


def week_dates(week_start: date | datetime, timezone: str = "UTC") -> dict[DayOfWeekEnum, date]:
    """Map every weekday name to its date in the ISO week containing week_start."""
    monday = iso_week_start(_as_local_date(week_start, timezone))
    return {day: monday + timedelta(days=index) for index, day in enumerate(DayOfWeekEnum)}


def week_date_range(week_start: date | datetime, timezone: str = "UTC") -> WeekRange:
    dates = week_dates(week_start, timezone)
    return WeekRange(
        start_date=dates[DayOfWeekEnum.MONDAY],
        end_date=dates[DayOfWeekEnum.SUNDAY],
        dates=dates,
    )


def resolve_occurrence(
    slot: RecurringPattern,
    week_start: date | datetime,
    *,
    now: datetime,
    timezone_override: str | None = None,
) -> Occurrence:
    """Resolve a slot onto the ISO week containing week_start.

    ``week_start`` may be any day of the week. A ``date`` is taken as a local
    calendar date; a ``datetime`` is first converted into the timezone.
    """
    timezone = timezone_override or slot.timezone
    day_of_week = DayOfWeekEnum(slot.day_of_week)
    local_date = week_dates(week_start, timezone)[day_of_week]
    local_start = localize(local_date, parse_time_of_day(slot.time_of_day), timezone)
    starts_at = local_start.astimezone(UTC)

    return Occurrence(
        starts_at=starts_at,
        local_start=local_start,
        local_date=local_date,
        local_time=local_start.strftime("%H:%M"),
        day_of_week=day_of_week,
        timezone=timezone,
        is_in_past=starts_at < ensure_utc(now),
    )


def weekly_occurrence_dates(start: date, end: date, day_of_week: DayOfWeekEnum | str) -> list[date]:
    """Dates in [start, end] falling on day_of_week, one per week."""
    target = DayOfWeekEnum(day_of_week).iso_weekday
    current = start + timedelta(days=(target - start.isoweekday()) % 7)
    dates: list[date] = []
    while current <= end:
        dates.append(current)
        current += timedelta(days=7)
    return dates
