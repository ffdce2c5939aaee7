"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# Aggregation Configuration
# =============================================================================

@dataclass(frozen=True)
class AggregationConfig:
    """Controls how learning events are folded into the derived fashion state."""

    # Events older than this are ignored by the replay
    MAX_EVENT_AGE_DAYS: int = 180

    # Negative signals decay on the shorter half-life
    POSITIVE_HALF_LIFE_DAYS: float = 30.0
    NEGATIVE_HALF_LIFE_DAYS: float = 14.0

    # Events with polarity != 0 needed before a user leaves cold start
    MIN_EVENTS_FOR_ACTIVE: int = 10

    # Applied once, after all events are summed
    SCORE_FLOOR: float = -3.0
    SCORE_CEILING: float = 5.0

    # Recompute state older than this
    STALENESS_THRESHOLD_SECONDS: int = 60 * 60

    # (upper bound exclusive, bracket) pairs; anything above is "luxury"
    PRICE_BRACKET_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
        (50.0, "budget"),
        (150.0, "mid"),
        (400.0, "premium"),
    )
    TOP_PRICE_BRACKET: str = "luxury"

    STATE_VERSION: int = 1


DEFAULT_AGGREGATION_CONFIG = AggregationConfig()


# =============================================================================
# Event Logging Configuration
# =============================================================================

@dataclass(frozen=True)
class EventLoggingConfig:
    """Timeout and circuit breaker settings for the ingestion write path."""

    # Hard deadline for a single event write; callers never wait longer
    TIMEOUT_MS: int = 50

    # Open the circuit after this many consecutive failures
    CIRCUIT_BREAKER_THRESHOLD: int = 10

    # Try to close the circuit again after this long
    CIRCUIT_BREAKER_RESET_MS: int = 30_000

    # Background writer threads
    MAX_WORKERS: int = 4


DEFAULT_EVENT_LOGGING_CONFIG = EventLoggingConfig()


# =============================================================================
# Consent Cache Configuration
# =============================================================================

@dataclass(frozen=True)
class ConsentCacheConfig:
    """How long a consent lookup stays cached."""

    TTL_SECONDS: float = 60.0


DEFAULT_CONSENT_CACHE_CONFIG = ConsentCacheConfig()


# =============================================================================
# Batch Job Configuration
# =============================================================================

@dataclass(frozen=True)
class BatchJobConfig:
    """Bounds for the scheduled recompute and cleanup jobs."""

    # Users recomputed per run
    STALE_BATCH_LIMIT: int = 100

    # Retention sweep deletes events older than this
    EVENT_RETENTION_DAYS: int = 365

    # Deadline for the personalization-path state read
    STATE_READ_TIMEOUT_MS: int = 100

    # Worker threads for that read; also the cap on reads in flight
    STATE_READ_WORKERS: int = 2


DEFAULT_BATCH_JOB_CONFIG = BatchJobConfig()


# =============================================================================
# Summary Configuration
# =============================================================================

@dataclass(frozen=True)
class SummaryConfig:
    """Sizes of the top-N lists handed to personalization consumers."""

    TOP_N: int = 5
    AVOID_N: int = 3


DEFAULT_SUMMARY_CONFIG = SummaryConfig()


# =============================================================================
# Storage Names
# =============================================================================

USERS_TABLE = "users"
LEARNING_EVENTS_TABLE = "user_learning_events"
FASHION_STATE_TABLE = "user_fashion_state"
STALE_USERS_RPC = "get_stale_learning_user_ids"

EVENT_SCHEMA_VERSION = 1
