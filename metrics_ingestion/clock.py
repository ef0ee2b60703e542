"""
Metrics Ingestion - Clock.

============================================================
RESPONSIBILITY
============================================================
Timestamps for metric records and gather results.

- UTC only
- Injectable so tests can pin record timestamps

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading


class ClockProtocol(ABC):
    """Abstract interface for the collector clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass


class SystemClock(ClockProtocol):
    """Clock using actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(ClockProtocol):
    """
    Clock frozen at a given instant until moved.

    Thread-safe so it can be shared by concurrent item tasks.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = initial_time or datetime.now(timezone.utc)
        if self._time.tzinfo is None:
            self._time = self._time.replace(tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """Move the clock forward; kwargs are passed to timedelta."""
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)
