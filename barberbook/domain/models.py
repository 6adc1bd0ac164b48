"""
Domain models for shop schedules, bookings and appointments.
"""

import re
from dataclasses import dataclass, field
from datetime import date as dt_date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidDate, InvalidScheduleFormat

# Slots are plain "HH:MM" strings; zero padding keeps them sortable.
Slot = str

_CLOCK_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def parse_clock_time(value: str) -> int:
    """
    Convert an "HH:MM" string into minutes since midnight.

    Raises:
        InvalidScheduleFormat: If the value is not a valid 24h clock time
    """
    if not isinstance(value, str):
        raise InvalidScheduleFormat(f"Expected an 'HH:MM' string, got {value!r}")

    match = _CLOCK_TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidScheduleFormat(f"Malformed clock time: {value!r}")

    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock_time(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def coerce_date(value) -> Date:
    """
    Normalise a calendar date given as a date object or a "YYYY-MM-DD" string.

    Raises:
        InvalidDate: If the value cannot be interpreted as a calendar date
    """
    if isinstance(value, datetime):
        return pendulum.date(value.year, value.month, value.day)

    if isinstance(value, dt_date):
        return pendulum.date(value.year, value.month, value.day)

    if isinstance(value, str):
        try:
            return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
        except ValueError as exc:
            raise InvalidDate(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc

    raise InvalidDate(f"Invalid date {value!r}, expected YYYY-MM-DD")


def weekday_index(day: dt_date) -> int:
    """Return the weekday with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class DayWindow:
    """
    Working hours for one weekday.

    Invariant: start must be before end when the day is open.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    start: str
    end: str
    is_open: bool = True

    def __post_init__(self):
        if self.day_of_week not in range(7):
            raise InvalidScheduleFormat(
                f"day_of_week must be between 0 and 6, got {self.day_of_week!r}"
            )
        start = parse_clock_time(self.start)
        end = parse_clock_time(self.end)
        if self.is_open and start >= end:
            raise InvalidScheduleFormat(
                f"{WEEKDAY_NAMES[self.day_of_week]}: opening time {self.start} "
                f"must be before closing time {self.end}"
            )

    @property
    def start_minutes(self) -> int:
        return parse_clock_time(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_clock_time(self.end)


def _ensure_unique_weekdays(days: Tuple[DayWindow, ...]) -> None:
    seen: set[int] = set()
    for window in days:
        if window.day_of_week in seen:
            raise InvalidScheduleFormat(
                f"Duplicate entry for {WEEKDAY_NAMES[window.day_of_week]}"
            )
        seen.add(window.day_of_week)


@dataclass(frozen=True)
class WeeklySchedule:
    """
    Recurring weekly opening hours of a shop.

    A weekday without an entry is closed.
    """
    days: Tuple[DayWindow, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "days", tuple(self.days))
        _ensure_unique_weekdays(self.days)

    def __iter__(self) -> Iterator[DayWindow]:
        return iter(sorted(self.days, key=lambda w: w.day_of_week))

    def window_for(self, day_of_week: int) -> DayWindow | None:
        """Return the open window for a weekday, or None if the shop is closed."""
        for window in self.days:
            if window.day_of_week == day_of_week:
                return window if window.is_open else None
        return None


@dataclass(frozen=True)
class StaffAvailability:
    """
    Individual weekly hours of one staff member.

    An entry for a weekday means the staff member works that day; a missing
    entry means they do not, whatever the shop hours say.
    """
    staff_id: str
    days: Tuple[DayWindow, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "days", tuple(self.days))
        _ensure_unique_weekdays(self.days)

    def window_for(self, day_of_week: int) -> DayWindow | None:
        """Return the staff member's window for a weekday, or None."""
        for window in self.days:
            if window.day_of_week == day_of_week:
                return window
        return None


@dataclass(frozen=True)
class BookedInterval:
    """Time occupied by one active appointment."""
    date: Date
    start_time: str
    duration_minutes: int
    staff_id: Optional[str] = None

    @property
    def start_minutes(self) -> int:
        return parse_clock_time(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    def overlaps(self, start_minutes: int, end_minutes: int) -> bool:
        """
        Check whether [start_minutes, end_minutes) overlaps this booking.

        Back-to-back intervals do not overlap.
        """
        return start_minutes < self.end_minutes and self.start_minutes < end_minutes


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Appointment:
    """A client's booking of a service at a shop."""
    id: Optional[str]
    client_id: str
    shop_id: str
    service_id: str
    date: Date
    time: str
    staff_id: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    created_at: Optional[DateTime] = None
    source_appointment_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        """Only scheduled appointments occupy time."""
        return self.status == AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class Service:
    """A bookable service offered by a shop."""
    id: str
    shop_id: str
    name: str
    duration_minutes: int
    price: Decimal = Decimal("0")
    is_active: bool = True


@dataclass(frozen=True)
class StaffMember:
    """A barber working at a shop."""
    id: str
    shop_id: str
    name: str
    availability: Optional[StaffAvailability] = None
    assigned_services: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Shop:
    """A barbershop and its weekly opening hours."""
    id: str
    name: str
    working_hours: WeeklySchedule = field(default_factory=WeeklySchedule)


@dataclass(frozen=True)
class ConfirmedSlot:
    """The source time is free on the shifted date."""
    date: Date
    time: str

    def format_display(self) -> str:
        return f"{WEEKDAY_NAMES[weekday_index(self.date)]}, {self.date.format('DD.MM.YYYY')} {self.time}"


@dataclass(frozen=True)
class Unavailable:
    """The source time is not bookable on the shifted date."""
    date: Date
    time: str

    def format_display(self) -> str:
        return f"{WEEKDAY_NAMES[weekday_index(self.date)]}, {self.date.format('DD.MM.YYYY')} {self.time}"
