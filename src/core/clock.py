"""
Clock abstraction.

Decay, staleness, cache expiry and circuit breaker timing all depend on
"now". Services take a Clock so tests can pin and advance time instead of
sleeping.
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Source of wall-clock and monotonic time."""

    def now(self) -> datetime:
        """Current UTC time (timezone-aware)."""
        ...

    def monotonic(self) -> float:
        """Seconds from an arbitrary fixed point; only differences matter."""
        ...


class SystemClock:
    """Real time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class FrozenClock:
    """
    A clock that only moves when told to.

    Both readings advance together, so a test that advances by 31 seconds
    sees the same 31 seconds in TTL checks and in timestamps.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        if self._now.tzinfo is None:
            self._now = self._now.replace(tzinfo=timezone.utc)
        self._monotonic = 1_000.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float = 0.0, days: float = 0.0) -> None:
        """Move both readings forward."""
        delta = seconds + days * 86400.0
        with self._lock:
            self._now = self._now + timedelta(seconds=delta)
            self._monotonic += delta


def utc_now() -> datetime:
    """Timezone-aware current UTC time, used as a model default."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
