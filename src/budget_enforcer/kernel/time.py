"""
Clock abstraction for deterministic pacing math

Every calculation that depends on "today" (day-in-period, rollover checks,
bill due dates) receives its time from a TimeProvider instead of reading the
system clock, so a test can pin the calendar to any day it likes.

Budget periods are calendar-local: a period that starts on the 1st starts on
the user's 1st, not UTC's. Providers therefore hand out naive local datetimes.
"""

from datetime import date, datetime, timedelta
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for clock collaborators"""

    def now(self) -> datetime:
        """Return the current local datetime"""
        ...


class RealTimeProvider:
    """Production clock backed by the system time"""

    def now(self) -> datetime:
        return datetime.now()


class TestTimeProvider:
    """
    Controllable clock for tests

    Time only moves when the test moves it.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        """
        Args:
            initial_time: Starting time (defaults to 2025-01-01 09:00)
        """
        self._current_time = initial_time or datetime(2025, 1, 1, 9, 0, 0)

    def now(self) -> datetime:
        return self._current_time

    def today(self) -> date:
        return self._current_time.date()

    def set_time(self, dt: datetime) -> None:
        self._current_time = dt

    def advance_hours(self, hours: int) -> None:
        self._current_time += timedelta(hours=hours)

    def advance_days(self, days: int) -> None:
        self._current_time += timedelta(days=days)
