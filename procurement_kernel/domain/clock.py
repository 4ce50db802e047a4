"""
Clock -- injectable time source for the approval workflow.

Every timestamp the workflow writes (request creation, ``approved_at``,
``reminder_sent_at``) and every age comparison it makes (duplicate
requests this month, reminder windows) goes through a ``Clock`` passed
in by the runtime.  Only ``SystemClock`` reads the wall clock.

Architecture position:
    Kernel > Domain -- zero I/O apart from ``SystemClock``.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """
    Time source handed to every service through its constructor.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``now_utc()`` returns the same instant normalised to UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests and maintenance dry runs.

    The time only moves when ``set_time``, ``advance``, ``advance_days``
    or ``tick`` is called, so reminder windows and month boundaries can be
    crossed on purpose.
    """

    def __init__(self, start: datetime | None = None):
        if start is not None and start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance(1)
        return self._current
