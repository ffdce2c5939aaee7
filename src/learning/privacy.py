"""
Learning privacy and transparency operations.

Backs the user-facing consent toggle, GDPR erasure and the
"what do you know about me" summary, plus an operator status report.
"""

from typing import Optional

from config.feature_flags import LearningFlags
from core.logging import get_logger
from learning.consent_cache import ConsentCache
from learning.events import LearningEventsService
from learning.fashion_state import FashionStateService
from learning.models import LearningDataSummary, LearningStatus
from learning.stores import ConsentStore
from learning.summary import create_state_summary

logger = get_logger(__name__)


class LearningPrivacyService:
    """
    Consent and data-rights operations for the learning loop.

    Every consent write invalidates the consent cache so the change applies
    to the very next event, not after the cache TTL.
    """

    def __init__(
        self,
        consent_store: ConsentStore,
        consent_cache: ConsentCache,
        events: LearningEventsService,
        fashion_state: FashionStateService,
        flags: Optional[LearningFlags] = None,
    ):
        self._consent_store = consent_store
        self._consent_cache = consent_cache
        self._events = events
        self._fashion_state = fashion_state
        self._flags = flags if flags is not None else LearningFlags.from_settings()

    # =========================================================================
    # Consent
    # =========================================================================

    def get_consent(self, user_id: str) -> bool:
        """Current consent, read through the cache."""
        return self._consent_cache.check(user_id)

    def enable_consent(self, user_id: str) -> None:
        self._consent_store.write_consent(user_id, True)
        self._consent_cache.invalidate(user_id)
        logger.info("Learning consent enabled", user_id=user_id)

    def disable_consent(self, user_id: str) -> int:
        """
        Revoke consent and delete everything learned about the user.

        Returns:
            Number of events deleted

        Raises:
            Whatever the stores raise; a half-done revocation must be visible.
        """
        self._consent_store.write_consent(user_id, False)
        self._consent_cache.invalidate(user_id)

        deleted = self._events.delete_user_events(user_id)
        self._fashion_state.delete_user_state(user_id)

        logger.info("Learning consent disabled, data deleted", user_id=user_id, events_deleted=deleted)
        return deleted

    def delete_all_data(self, user_id: str) -> int:
        """
        GDPR erasure: delete events and state. Consent is left unchanged.

        Returns:
            Number of events deleted
        """
        deleted = self._events.delete_user_events(user_id)
        self._fashion_state.delete_user_state(user_id)

        logger.info("Learning data deleted", user_id=user_id, events_deleted=deleted)
        return deleted

    # =========================================================================
    # Transparency
    # =========================================================================

    def get_learning_summary(self, user_id: str) -> LearningDataSummary:
        """What the learning loop has stored about this user."""
        events_count = self._events.get_event_count(user_id)
        try:
            state = self._fashion_state.get_state(user_id)
        except Exception:
            state = None

        if state is None:
            return LearningDataSummary(
                events_count=events_count,
                has_state=False,
                is_cold_start=True,
            )

        summary = create_state_summary(state)
        return LearningDataSummary(
            events_count=events_count,
            has_state=True,
            is_cold_start=state.is_cold_start,
            top_preferences={
                "brands": summary.top_brands,
                "colors": summary.top_colors,
                "styles": summary.top_styles,
            },
        )

    def get_status(self) -> LearningStatus:
        """Flags and circuit breaker state, for operators."""
        return LearningStatus(
            events_enabled=self._flags.events_enabled,
            state_enabled=self._flags.state_enabled,
            shadow_mode=self._flags.shadow_mode,
            circuit_breaker=self._events.get_circuit_breaker_status(),
        )
