"""
Core business logic for computing bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no store access, no clock reads, no I/O). Every
booking surface (client booking, admin booking, recurrence re-check)
goes through this module.
"""

from datetime import date as dt_date, datetime
from typing import Iterable, List, Optional, Sequence

from .exceptions import InvalidDuration
from .models import (
    BookedInterval,
    DayWindow,
    StaffAvailability,
    WeeklySchedule,
    coerce_date,
    format_clock_time,
    weekday_index,
)

DEFAULT_SLOT_INTERVAL_MINUTES = 30


def _ensure_positive_minutes(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidDuration(f"{name} must be a positive number of minutes, got {value!r}")


def count_occupants(
    start_minutes: int,
    end_minutes: int,
    booked_intervals: Iterable[BookedInterval],
) -> int:
    """
    Count distinct occupants holding time inside [start_minutes, end_minutes).

    A staff member counts once however many of their bookings overlap.
    Bookings without a staff member each count as one occupant.
    """
    occupants: set = set()

    for index, booked in enumerate(booked_intervals):
        if not booked.overlaps(start_minutes, end_minutes):
            continue
        if booked.staff_id is None:
            occupants.add(("unassigned", index))
        else:
            occupants.add(("staff", booked.staff_id))

    return len(occupants)


def is_slot_free(
    start_minutes: int,
    duration_minutes: int,
    booked_intervals: Sequence[BookedInterval],
    staff_id: Optional[str] = None,
    staff_capacity: int = 1,
) -> bool:
    """
    Check whether a slot can take one more booking.

    With a staff member, any overlapping booking of that member is a conflict.
    Without one, the slot stays free until every staff member is occupied; a
    shop with no staff on record is treated as a single chair.
    """
    end_minutes = start_minutes + duration_minutes

    if staff_id is not None:
        return not any(
            booked.staff_id == staff_id and booked.overlaps(start_minutes, end_minutes)
            for booked in booked_intervals
        )

    capacity = max(staff_capacity, 1)
    return count_occupants(start_minutes, end_minutes, booked_intervals) < capacity


class AvailabilityEngine:
    """
    Computes the bookable start times for one shop on one date.

    Algorithm:
    1. Resolve the working window (staff hours or shop hours) for the weekday
    2. Generate candidates every ``slot_interval_minutes`` that fit the window
    3. Drop candidates that conflict with existing bookings
    4. Drop candidates that already started when the date is today
    5. Return sorted, deduplicated "HH:MM" strings
    """

    def __init__(self, slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES):
        _ensure_positive_minutes("slot_interval_minutes", slot_interval_minutes)
        self.slot_interval_minutes = slot_interval_minutes

    def compute_available_slots(
        self,
        *,
        shop_schedule: WeeklySchedule,
        date,
        service_duration_minutes: int,
        now: datetime,
        booked_intervals: Sequence[BookedInterval] = (),
        staff_id: Optional[str] = None,
        staff_schedule: Optional[StaffAvailability] = None,
        all_staff_count: int = 1,
    ) -> List[str]:
        """
        Compute available slots for a service on a date.

        Args:
            shop_schedule: Weekly opening hours of the shop
            date: Target date (date object or "YYYY-MM-DD")
            service_duration_minutes: Length of the requested service
            now: Current time in the shop's timezone
            booked_intervals: Active bookings of the shop on that date, for all staff
            staff_id: Restrict to one staff member's hours and bookings
            staff_schedule: Individual hours of ``staff_id``; when None the shop hours apply
            all_staff_count: Number of staff at the shop, used when ``staff_id`` is None

        Returns:
            Ascending list of "HH:MM" start times; empty when nothing is bookable

        Raises:
            InvalidDuration: If the service duration is not positive
            InvalidDate: If the date cannot be parsed
        """
        _ensure_positive_minutes("service_duration_minutes", service_duration_minutes)
        target_date = coerce_date(date)

        window = self._resolve_window(
            shop_schedule=shop_schedule,
            staff_schedule=staff_schedule,
            staff_id=staff_id,
            target_date=target_date,
        )
        if window is None:
            return []

        candidates = self._generate_candidates(window, service_duration_minutes)

        day_bookings = [
            booked for booked in booked_intervals
            if booked.date == target_date
        ]
        free = [
            start for start in candidates
            if is_slot_free(
                start,
                service_duration_minutes,
                day_bookings,
                staff_id=staff_id,
                staff_capacity=all_staff_count,
            )
        ]

        free = self._drop_past_slots(free, target_date, now)

        return [format_clock_time(start) for start in sorted(set(free))]

    def _resolve_window(
        self,
        *,
        shop_schedule: WeeklySchedule,
        staff_schedule: Optional[StaffAvailability],
        staff_id: Optional[str],
        target_date: dt_date,
    ) -> DayWindow | None:
        """
        Pick the working window for the target weekday.

        Staff hours supersede shop hours when a staff member with individual
        hours is requested.
        """
        day_of_week = weekday_index(target_date)

        if staff_id is not None and staff_schedule is not None:
            return staff_schedule.window_for(day_of_week)

        return shop_schedule.window_for(day_of_week)

    def _generate_candidates(self, window: DayWindow, duration_minutes: int) -> List[int]:
        """
        Generate candidate start times (minutes since midnight) inside a window.

        A candidate that would run past closing is excluded, not truncated.
        """
        candidates: List[int] = []
        window_end = window.end_minutes
        current = window.start_minutes

        while current < window_end:
            if current + duration_minutes > window_end:
                break
            candidates.append(current)
            current += self.slot_interval_minutes

        return candidates

    @staticmethod
    def _drop_past_slots(
        starts: List[int],
        target_date: dt_date,
        now: datetime,
    ) -> List[int]:
        """Keep only starts strictly after ``now`` when the date is today."""
        if target_date != coerce_date(now):
            return starts

        now_seconds = (
            now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1_000_000
        )
        return [start for start in starts if start * 60 > now_seconds]
