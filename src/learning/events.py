"""
Learning Events Service.

Logs user outcome events for the learning loop.

Key guarantees:
- Never blocks user actions longer than EVENT_LOGGING_CONFIG.TIMEOUT_MS
- Never raises to the caller
- Respects user consent (checked before every insert)
- Circuit breaker prevents cascading failures when the store is unhealthy
"""

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from config.constants import DEFAULT_EVENT_LOGGING_CONFIG, EventLoggingConfig
from config.feature_flags import LearningFlags
from core.clock import Clock, SystemClock
from core.logging import get_logger
from learning.circuit_breaker import CircuitBreaker
from learning.consent_cache import ConsentCache
from learning.models import (
    EVENT_SIGNAL_DEFAULTS,
    CircuitBreakerStatus,
    EntityType,
    ExtractedFeatures,
    LearningEvent,
    LearningEventType,
)
from learning.stores import EventStore

logger = get_logger(__name__)


# Outcomes of the background write unit
_NO_CONSENT = "no_consent"
_INSERTED = "inserted"
_DUPLICATE = "duplicate"


class LearningEventsService:
    """
    Fire-and-forget writer for learning events.

    Each accepted event runs as an independent unit of work on a
    service-owned thread pool: consent check, then insert. The caller waits
    for that unit at most TIMEOUT_MS. When the deadline wins, the unit is
    abandoned (left to finish or fail on its own) and the attempt counts as
    a failure for the circuit breaker.

    Args:
        event_store: Durable event log
        consent_cache: Cached consent lookups
        flags: Learning feature flags (default: from settings)
        config: Timeout / circuit breaker tuning
        circuit_breaker: Breaker instance (default: built from config)
        clock: Time source for event timestamps and the breaker
        executor: Thread pool for writes (default: one owned by this service)
    """

    def __init__(
        self,
        event_store: EventStore,
        consent_cache: ConsentCache,
        flags: Optional[LearningFlags] = None,
        config: EventLoggingConfig = DEFAULT_EVENT_LOGGING_CONFIG,
        circuit_breaker: Optional[CircuitBreaker] = None,
        clock: Optional[Clock] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._store = event_store
        self._consent_cache = consent_cache
        self._flags = flags if flags is not None else LearningFlags.from_settings()
        self._config = config
        self._clock = clock or SystemClock()
        self._breaker = circuit_breaker or CircuitBreaker(
            threshold=config.CIRCUIT_BREAKER_THRESHOLD,
            reset_seconds=config.CIRCUIT_BREAKER_RESET_MS / 1000.0,
            clock=self._clock,
        )
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.MAX_WORKERS,
            thread_name_prefix="learning-events",
        )
        self._timeout_seconds = config.TIMEOUT_MS / 1000.0

    # =========================================================================
    # Event Logging
    # =========================================================================

    def log_event(self, event: LearningEvent) -> None:
        """
        Log a learning event.

        Fire-and-forget: returns within TIMEOUT_MS and never raises.

        Args:
            event: Event to log
        """
        if not isinstance(event, LearningEvent):
            logger.warning("Dropping non-event passed to log_event", received=type(event).__name__)
            return

        try:
            self._log_event(event)
        except Exception as e:
            logger.error(
                "Unexpected error logging learning event",
                user_id=getattr(event, "user_id", None),
                event_type=str(getattr(event, "event_type", None)),
                error=str(e),
            )

    def log_event_with_defaults(
        self,
        user_id: str,
        event_type: Union[LearningEventType, str],
        entity_type: Union[EntityType, str],
        entity_id: Optional[str],
        extracted_features: Union[ExtractedFeatures, Dict[str, Any], None],
        source_feature: str,
        *,
        entity_signature: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> None:
        """
        Log an event using the default polarity/weight for its type.

        Fire-and-forget like log_event; a malformed event is dropped with a
        warning instead of raising.
        """
        try:
            event_type = LearningEventType(event_type)
            defaults = EVENT_SIGNAL_DEFAULTS[event_type]
            event = LearningEvent(
                user_id=user_id,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_signature=entity_signature,
                signal_polarity=defaults.polarity,
                signal_weight=defaults.weight,
                extracted_features=extracted_features or {},
                context=context or {},
                source_feature=source_feature,
                idempotency_key=idempotency_key,
                event_ts=self._clock.now(),
            )
        except (ValueError, ValidationError) as e:
            logger.warning(
                "Dropping malformed learning event",
                user_id=user_id,
                event_type=str(event_type),
                error=str(e),
            )
            return

        self.log_event(event)

    def _log_event(self, event: LearningEvent) -> None:
        if not self._flags.events_enabled:
            return

        # Silently skip while the circuit is open
        if not self._breaker.allow_request():
            return

        try:
            future: Future = self._executor.submit(self._write_if_consented, event)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning("Event writer unavailable", user_id=event.user_id, error=str(e))
            return

        try:
            outcome = future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError:
            self._handle_failure("timeout", event.user_id)
            return
        except Exception as e:
            self._handle_failure(str(e) or type(e).__name__, event.user_id)
            return

        if outcome == _NO_CONSENT:
            return

        self._breaker.record_success()
        if outcome == _DUPLICATE:
            logger.debug(
                "Duplicate learning event ignored",
                user_id=event.user_id,
                idempotency_key=event.idempotency_key,
            )

    def _write_if_consented(self, event: LearningEvent) -> str:
        """Background unit of work: consent gate, then insert-or-ignore."""
        try:
            has_consent = self._consent_cache.check(event.user_id)
        except Exception as e:
            logger.warning("Consent check failed", user_id=event.user_id, error=str(e))
            return _NO_CONSENT
        if not has_consent:
            return _NO_CONSENT

        inserted = self._store.insert_event(event)
        return _INSERTED if inserted else _DUPLICATE

    def _handle_failure(self, reason: str, user_id: str) -> None:
        """Count a failed write against the circuit breaker."""
        self._breaker.record_failure()
        logger.warning(
            "Event logging failed",
            user_id=user_id,
            reason=reason,
            failures=self._breaker.consecutive_failures,
        )

    # =========================================================================
    # Health / Admin
    # =========================================================================

    def get_circuit_breaker_status(self) -> CircuitBreakerStatus:
        """Circuit breaker status for health checks."""
        return self._breaker.status()

    def get_event_count(self, user_id: str) -> int:
        """Number of stored events for a user; 0 if the count fails."""
        try:
            return self._store.count_events(user_id)
        except Exception as e:
            logger.error("get_event_count failed", user_id=user_id, error=str(e))
            return 0

    def delete_user_events(self, user_id: str) -> int:
        """
        Delete all events for a user (GDPR / consent revocation).

        Raises:
            Whatever the store raises; deletion failures must reach the caller.
        """
        try:
            deleted = self._store.delete_events(user_id)
        except Exception as e:
            logger.error("delete_user_events failed", user_id=user_id, error=str(e))
            raise
        logger.info("Deleted learning events", user_id=user_id, deleted=deleted)
        return deleted

    def purge_events_before(self, cutoff: datetime) -> int:
        """Delete every event older than cutoff (retention sweep). Raises on failure."""
        deleted = self._store.delete_events_before(cutoff)
        if deleted:
            logger.info("Purged expired learning events", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting writes. In-flight writes finish in the background unless wait=True."""
        self._executor.shutdown(wait=wait)
