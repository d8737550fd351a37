"""Wall-clock suppliers for increment boundaries.

The engine reads time only through a ``Clock`` so tests can drive it with a
``ManualClock``.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Supplies timezone-aware UTC instants."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the host wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """Virtual clock that only moves when told to.

    Args:
        start: Initial instant (defaults to a fixed epoch-like instant)
        tick: Amount the clock advances after every ``now()`` read
    """

    def __init__(
        self,
        start: datetime | None = None,
        tick: timedelta = timedelta(0),
    ):
        self._now = start or datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
        self._tick = tick

    def now(self) -> datetime:
        current = self._now
        self._now = current + self._tick
        return current

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Move the clock forward and return the new instant."""
        self._now += timedelta(seconds=seconds, **kwargs)
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = instant
