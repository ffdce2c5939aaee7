"""
Scheduled learning jobs.

Two job bodies, meant to be triggered by an external scheduler
(see scripts/run_learning_jobs.py):

- recompute_stale_states(): every ~10 minutes, recompute up to
  STALE_BATCH_LIMIT users whose fashion state is missing or stale
- cleanup_old_events(): daily, delete events older than EVENT_RETENTION_DAYS
"""

import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from config.constants import DEFAULT_BATCH_JOB_CONFIG, BatchJobConfig
from config.feature_flags import LearningFlags
from core.clock import Clock, SystemClock
from core.logging import LoggerMixin, bind_context, unbind_context
from learning.events import LearningEventsService
from learning.fashion_state import FashionStateService
from learning.staleness import StalenessScanner


@dataclass
class BatchRunResult:
    """Outcome of one recompute pass."""
    user_count: int = 0
    success_count: int = 0
    error_count: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class LearningJobs(LoggerMixin):
    """
    Batch driver for the learning loop.

    Only one recompute pass runs at a time per instance; a call that
    overlaps a running pass returns None immediately.

    Usage:
        jobs = LearningJobs(fashion_state, events, scanner, flags)
        result = jobs.recompute_stale_states()
        deleted = jobs.cleanup_old_events()
    """

    def __init__(
        self,
        fashion_state: FashionStateService,
        events: LearningEventsService,
        scanner: StalenessScanner,
        flags: Optional[LearningFlags] = None,
        config: BatchJobConfig = DEFAULT_BATCH_JOB_CONFIG,
        clock: Optional[Clock] = None,
    ):
        self._fashion_state = fashion_state
        self._events = events
        self._scanner = scanner
        self._flags = flags if flags is not None else LearningFlags.from_settings()
        self._config = config
        self._clock = clock or SystemClock()

        self._run_lock = threading.Lock()
        self._last_run_at: Optional[datetime] = None
        self._last_result: Optional[BatchRunResult] = None

    # =========================================================================
    # Recompute
    # =========================================================================

    def recompute_stale_states(self, limit: Optional[int] = None) -> Optional[BatchRunResult]:
        """
        Recompute fashion state for stale users.

        Args:
            limit: Maximum users this pass (default STALE_BATCH_LIMIT)

        Returns:
            Counts for the pass, or None if learning is disabled or another
            pass is already running
        """
        if self._flags.is_learning_disabled():
            return None

        if not self._run_lock.acquire(blocking=False):
            self.logger.debug("Recompute already running, skipping")
            return None

        try:
            return self._run_recompute(limit if limit is not None else self._config.STALE_BATCH_LIMIT)
        finally:
            self._run_lock.release()

    def _run_recompute(self, limit: int) -> BatchRunResult:
        started = time.monotonic()
        result = BatchRunResult()

        user_ids = self._scanner.get_stale_user_ids(limit)
        result.user_count = len(user_ids)
        if user_ids:
            self.logger.info("Recomputing stale fashion states", users=len(user_ids))

        for user_id in user_ids:
            bind_context(user_id=user_id)
            try:
                self._fashion_state.compute_and_save_state(user_id)
                result.success_count += 1
            except Exception as e:
                result.error_count += 1
                self.logger.warning("Failed to recompute fashion state", error=str(e))
            finally:
                unbind_context("user_id")

        result.duration_ms = int((time.monotonic() - started) * 1000)
        self._last_run_at = self._clock.now()
        self._last_result = result

        if result.user_count:
            self.logger.info(
                "Fashion state recompute complete",
                users=result.user_count,
                succeeded=result.success_count,
                failed=result.error_count,
                duration_ms=result.duration_ms,
            )
        return result

    # =========================================================================
    # Retention
    # =========================================================================

    def cleanup_old_events(self) -> int:
        """
        Delete events older than EVENT_RETENTION_DAYS.

        Returns:
            Number of events deleted; 0 when events are disabled or the purge fails
        """
        if not self._flags.events_enabled:
            return 0

        cutoff = self._clock.now() - timedelta(days=self._config.EVENT_RETENTION_DAYS)
        try:
            deleted = self._events.purge_events_before(cutoff)
        except Exception as e:
            self.logger.error("Event retention sweep failed", error=str(e))
            return 0

        self.logger.info("Event retention sweep complete", deleted=deleted)
        return deleted

    # =========================================================================
    # Status
    # =========================================================================

    def is_running(self) -> bool:
        return self._run_lock.locked()

    def get_status(self) -> Dict[str, Any]:
        """Running flag, last run time and last result, for operators."""
        return {
            "is_running": self.is_running(),
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }
