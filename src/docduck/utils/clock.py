"""Clock abstraction for dependency injection in tests.

Snapshots and settings records carry timestamps; components take a clock so
tests can pin those timestamps without monkey patching.
"""

import time
from datetime import UTC, datetime
from typing import Protocol


class ClockProtocol(Protocol):
    """Protocol for clock implementations."""

    def time(self) -> float:
        """Get the current time as a Unix timestamp."""
        ...

    def now(self) -> datetime:
        """Get the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Real system clock implementation."""

    def time(self) -> float:
        return time.time()

    def now(self) -> datetime:
        return datetime.now(UTC)


class FakeClock:
    """Fake clock implementation for testing."""

    def __init__(self, initial_time: float = 1_700_000_000.0) -> None:
        """Initialize with a specific time.

        Args:
            initial_time: Initial Unix timestamp
        """
        self._current_time = initial_time

    def time(self) -> float:
        return self._current_time

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._current_time, UTC)

    def advance(self, seconds: float) -> None:
        """Advance the clock by the specified number of seconds."""
        self._current_time += seconds
