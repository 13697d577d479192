"""
Injectable time source.

Reconciliation decisions depend on "today" (which rentals are due, which
have expired, which pay cycle is open).  Services take a ``Clock`` in their
constructor and public operations take ``today`` explicitly, so nothing in
the kernel or the modules reads the wall clock on its own.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """Calendar date of ``now()`` in the clock's own timezone."""
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock UTC time.  The only place the kernel reads real time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


_NOON = (12, 0, 0)


class DeterministicClock(Clock):
    """
    Frozen clock for tests, replays and ``--as-of`` runs.

    ``now()`` is stable until moved with ``set_time``, ``set_date``,
    ``advance``, ``advance_days`` or ``tick``.  Naive start times stay naive,
    which is what SQLite hands back.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._base = fixed_time or datetime(2024, 1, 1, *_NOON, tzinfo=timezone.utc)
        self._offset = timedelta()

    @classmethod
    def at_date(cls, day: date) -> "DeterministicClock":
        """Clock fixed at noon UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, *_NOON, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._base + self._offset

    def set_time(self, time: datetime) -> None:
        self._base = time
        self._offset = timedelta()

    def set_date(self, day: date) -> None:
        """Jump to noon of ``day``, keeping the current timezone."""
        self.set_time(
            datetime(day.year, day.month, day.day, *_NOON, tzinfo=self._base.tzinfo)
        )

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._offset += timedelta(days=days)

    def tick(self) -> datetime:
        """Move forward one second and return the new time."""
        self.advance(1)
        return self.now()
