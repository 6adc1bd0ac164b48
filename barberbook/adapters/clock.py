"""
Clock adapters supplying the current wall-clock time.
"""

import pendulum
from pendulum import DateTime


class SystemClock:
    """Reads the real time in the shop's timezone."""

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.timezone = timezone

    def current_time(self) -> DateTime:
        return pendulum.now(self.timezone)


class FixedClock:
    """
    Clock pinned to a given instant.

    Useful for tests and for replaying a query "as of" a point in time.
    """

    def __init__(self, now: DateTime):
        self._now = now

    def current_time(self) -> DateTime:
        return self._now

    def set(self, now: DateTime) -> None:
        """Move the clock to another instant."""
        self._now = now
