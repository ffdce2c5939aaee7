"""
Fashion State Service.

Owns the user_fashion_state row: recomputes it from the event log and
serves it to personalization consumers.

Two read paths:
- get_state(): raw read for jobs and admin tooling, errors propagate
- get_state_with_fallback(): hot-path read for personalization; bounded by
  STATE_READ_TIMEOUT_MS and returns None instead of failing
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import timedelta
from typing import Optional

from config.constants import (
    DEFAULT_AGGREGATION_CONFIG,
    DEFAULT_BATCH_JOB_CONFIG,
    DEFAULT_SUMMARY_CONFIG,
    AggregationConfig,
    BatchJobConfig,
    SummaryConfig,
)
from config.feature_flags import LearningFlags
from core.clock import Clock, SystemClock
from core.logging import get_logger
from learning.models import FashionStateSummary, UserFashionState
from learning.scoring import compute_fashion_state
from learning.stores import EventStore, StateStore
from learning.summary import create_state_summary

logger = get_logger(__name__)


class FashionStateService:
    """
    Compute, store and serve per-user fashion state.

    Args:
        event_store: Source of learning events
        state_store: Destination for the derived state
        flags: Learning feature flags (default: from settings)
        config: Aggregation tunables
        batch_config: Read timeout for the fallback path
        summary_config: Sizes of the summary lists
        clock: Time source (default: system clock)
    """

    def __init__(
        self,
        event_store: EventStore,
        state_store: StateStore,
        flags: Optional[LearningFlags] = None,
        config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
        batch_config: BatchJobConfig = DEFAULT_BATCH_JOB_CONFIG,
        summary_config: SummaryConfig = DEFAULT_SUMMARY_CONFIG,
        clock: Optional[Clock] = None,
    ):
        self._events = event_store
        self._states = state_store
        self._flags = flags if flags is not None else LearningFlags.from_settings()
        self._config = config
        self._batch_config = batch_config
        self._summary_config = summary_config
        self._clock = clock or SystemClock()
        self._read_executor = ThreadPoolExecutor(
            max_workers=batch_config.STATE_READ_WORKERS,
            thread_name_prefix="fashion-state-read",
        )
        # One slot per worker; a read that outlives its deadline keeps its slot
        self._read_slots = threading.BoundedSemaphore(batch_config.STATE_READ_WORKERS)

    # =========================================================================
    # Compute
    # =========================================================================

    def compute_and_save_state(self, user_id: str) -> UserFashionState:
        """
        Recompute a user's fashion state from their recent events and save it.

        Reads events newer than MAX_EVENT_AGE_DAYS, replays them through the
        scoring model and upserts the result, replacing the previous row.

        Args:
            user_id: User to recompute

        Returns:
            The saved state

        Raises:
            Whatever the stores raise; the batch job isolates failures per user.
        """
        now = self._clock.now()
        since = now - timedelta(days=self._config.MAX_EVENT_AGE_DAYS)

        events = self._events.query_events(user_id, since)
        state = compute_fashion_state(user_id, events, now, self._config)
        self._states.upsert_state(state)

        logger.info(
            "Computed fashion state",
            user_id=user_id,
            events=state.events_processed_count,
            cold_start=state.is_cold_start,
        )
        return state

    # =========================================================================
    # Read
    # =========================================================================

    def get_state(self, user_id: str) -> Optional[UserFashionState]:
        """Raw state read. None if the user has no state row. Errors propagate."""
        try:
            return self._states.read_state(user_id)
        except Exception as e:
            logger.error("get_state failed", user_id=user_id, error=str(e))
            raise

    def get_state_with_fallback(
        self,
        user_id: str,
        timeout_ms: Optional[int] = None,
    ) -> Optional[UserFashionState]:
        """
        State for personalization, or None.

        Returns None when state is disabled, the user has no state, the user
        is still in cold start, the read takes longer than the timeout, the
        read fails, or STATE_READ_WORKERS earlier reads are still running.

        Args:
            user_id: User to read
            timeout_ms: Read deadline (default STATE_READ_TIMEOUT_MS)
        """
        if not self._flags.state_enabled:
            return None

        if timeout_ms is None:
            timeout_ms = self._batch_config.STATE_READ_TIMEOUT_MS

        # Every slot held by a hung read: skip instead of queueing behind it
        if not self._read_slots.acquire(blocking=False):
            logger.warning("Fashion state read skipped, reads in flight", user_id=user_id)
            return None

        try:
            future = self._read_executor.submit(self._states.read_state, user_id)
        except RuntimeError as e:
            self._read_slots.release()
            logger.warning("Fashion state reader unavailable", user_id=user_id, error=str(e))
            return None
        future.add_done_callback(lambda _: self._read_slots.release())

        try:
            state = future.result(timeout=timeout_ms / 1000.0)
        except FutureTimeoutError:
            logger.warning("Fashion state read timed out", user_id=user_id, timeout_ms=timeout_ms)
            return None
        except Exception as e:
            logger.warning("Fashion state read failed", user_id=user_id, error=str(e))
            return None

        if state is None or state.is_cold_start:
            return None
        return state

    def get_state_summary(self, user_id: str) -> Optional[FashionStateSummary]:
        """Summary of the fallback state, for prompt / reranker injection."""
        state = self.get_state_with_fallback(user_id)
        if state is None:
            return None
        return create_state_summary(state, self._summary_config)

    def is_state_stale(self, user_id: str) -> bool:
        """True when the state is missing, older than the staleness threshold, or unreadable."""
        try:
            state = self._states.read_state(user_id)
        except Exception as e:
            logger.warning("Staleness check failed", user_id=user_id, error=str(e))
            return True

        if state is None:
            return True
        age = self._clock.now() - state.last_computed_at
        return age > timedelta(seconds=self._config.STALENESS_THRESHOLD_SECONDS)

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_user_state(self, user_id: str) -> None:
        """Delete a user's fashion state (GDPR / consent revocation). Errors propagate."""
        try:
            self._states.delete_state(user_id)
        except Exception as e:
            logger.error("delete_user_state failed", user_id=user_id, error=str(e))
            raise
        logger.info("Deleted fashion state", user_id=user_id)

    def shutdown(self, wait: bool = False) -> None:
        self._read_executor.shutdown(wait=wait)
