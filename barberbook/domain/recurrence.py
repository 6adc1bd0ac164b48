"""
Helpers for re-checking a booked time a number of weeks later.
"""

from typing import Sequence

from pendulum import Date

from .exceptions import InvalidRecurrence
from .models import ConfirmedSlot, Unavailable, coerce_date


def shift_date(source_date, weeks_forward: int) -> Date:
    """
    Move a date forward by whole weeks, keeping the weekday.

    Raises:
        InvalidRecurrence: If weeks_forward is not a positive integer
    """
    if isinstance(weeks_forward, bool) or not isinstance(weeks_forward, int) or weeks_forward < 1:
        raise InvalidRecurrence(f"weeks_forward must be at least 1, got {weeks_forward!r}")

    return coerce_date(source_date).add(weeks=weeks_forward)


def resolve_recurrence(
    time: str,
    new_date: Date,
    available_slots: Sequence[str],
) -> ConfirmedSlot | Unavailable:
    """Strict go/no-go: the exact source time must be among the available slots."""
    if time in available_slots:
        return ConfirmedSlot(date=new_date, time=time)
    return Unavailable(date=new_date, time=time)
