"""
Circuit breaker for the learning event write path.

After CIRCUIT_BREAKER_THRESHOLD consecutive failures the breaker opens and
event writes are skipped silently. Once CIRCUIT_BREAKER_RESET_MS has passed
the next caller closes it again and its write goes through as a probe.
"""

import threading
from datetime import datetime
from typing import Optional

from config.constants import DEFAULT_EVENT_LOGGING_CONFIG
from core.clock import Clock, SystemClock
from core.logging import LoggerMixin
from learning.models import CircuitBreakerStatus


class CircuitBreaker(LoggerMixin):
    """
    Consecutive-failure circuit breaker. All state changes happen under one lock.

    Args:
        threshold: Consecutive failures that open the circuit
        reset_seconds: How long the circuit stays open before a retry
        clock: Time source (default: system clock)
    """

    def __init__(
        self,
        threshold: int = DEFAULT_EVENT_LOGGING_CONFIG.CIRCUIT_BREAKER_THRESHOLD,
        reset_seconds: float = DEFAULT_EVENT_LOGGING_CONFIG.CIRCUIT_BREAKER_RESET_MS / 1000.0,
        clock: Optional[Clock] = None,
    ):
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        self._threshold = threshold
        self._reset_seconds = reset_seconds
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

        self._is_open = False
        self._consecutive_failures = 0
        self._opened_at_monotonic = 0.0
        self._opened_at: Optional[datetime] = None

    def allow_request(self) -> bool:
        """
        Decide whether a write may be attempted.

        Returns:
            False while open and inside the reset window. Past the window the
            circuit is closed (counter cleared) and True is returned.
        """
        with self._lock:
            if not self._is_open:
                return True
            elapsed = self._clock.monotonic() - self._opened_at_monotonic
            if elapsed < self._reset_seconds:
                return False
            self._is_open = False
            self._consecutive_failures = 0
            self._opened_at = None

        self.logger.info("Circuit breaker reset, retrying event writes")
        return True

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0

    def record_failure(self) -> bool:
        """
        Count a failed write.

        Returns:
            True if this failure opened the circuit
        """
        with self._lock:
            self._consecutive_failures += 1
            if self._is_open or self._consecutive_failures < self._threshold:
                return False
            self._is_open = True
            self._opened_at_monotonic = self._clock.monotonic()
            self._opened_at = self._clock.now()
            failures = self._consecutive_failures

        self.logger.error(
            "Circuit breaker OPENED due to consecutive failures",
            failures=failures,
            reset_seconds=self._reset_seconds,
        )
        return True

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def status(self) -> CircuitBreakerStatus:
        """Read-only snapshot for health reporting."""
        with self._lock:
            return CircuitBreakerStatus(
                is_open=self._is_open,
                consecutive_failures=self._consecutive_failures,
                opened_at=self._opened_at if self._is_open else None,
            )
