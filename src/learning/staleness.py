"""
Stale user detection for the recompute job.

A user is stale when they have learning events and either no fashion state
row yet or a row older than STALENESS_THRESHOLD_SECONDS.
"""

from datetime import timedelta
from typing import List, Optional

from config.constants import DEFAULT_AGGREGATION_CONFIG, DEFAULT_BATCH_JOB_CONFIG, AggregationConfig
from core.clock import Clock, SystemClock
from core.logging import get_logger
from learning.stores import StateStore

logger = get_logger(__name__)


class StalenessScanner:
    """Finds users whose fashion state needs a recompute."""

    def __init__(
        self,
        state_store: StateStore,
        config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
        clock: Optional[Clock] = None,
    ):
        self._store = state_store
        self._config = config
        self._clock = clock or SystemClock()

    def get_stale_user_ids(self, limit: int = DEFAULT_BATCH_JOB_CONFIG.STALE_BATCH_LIMIT) -> List[str]:
        """
        Args:
            limit: Maximum number of user ids to return

        Returns:
            Up to ``limit`` stale user ids; [] if the scan fails
        """
        if limit <= 0:
            return []

        threshold = self._clock.now() - timedelta(seconds=self._config.STALENESS_THRESHOLD_SECONDS)
        try:
            user_ids = self._store.list_stale_user_ids(threshold, limit)
        except Exception as e:
            logger.error("Stale user scan failed", error=str(e))
            return []

        return list(user_ids)[:limit]
