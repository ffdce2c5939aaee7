"""
Style learning loop.

Turns behavioral events (ratings, saves, purchases, returns, dismissals)
into a per-user fashion state that personalization can consume.

Quick start::

    from learning import LearningEventType, EntityType, get_learning_events_service

    events = get_learning_events_service()
    events.log_event_with_defaults(
        user_id="abc",
        event_type=LearningEventType.PRODUCT_SAVED,
        entity_type=EntityType.PRODUCT,
        entity_id="sku-1",
        extracted_features={"brands": ["Nike"], "colors": ["black"]},
        source_feature="discover",
    )

    summary = get_fashion_state_service().get_state_summary("abc")
"""

from learning.circuit_breaker import CircuitBreaker
from learning.consent_cache import ConsentCache
from learning.events import LearningEventsService
from learning.factory import (
    get_fashion_state_service,
    get_learning_events_service,
    get_learning_jobs,
    get_learning_privacy_service,
    reset_learning_services,
)
from learning.fashion_state import FashionStateService
from learning.jobs import BatchRunResult, LearningJobs
from learning.models import (
    EVENT_SIGNAL_DEFAULTS,
    EntityType,
    ExtractedFeatures,
    FashionStateSummary,
    LearningEvent,
    LearningEventType,
    PriceBracket,
    UserFashionState,
)
from learning.privacy import LearningPrivacyService
from learning.scoring import compute_fashion_state
from learning.staleness import StalenessScanner
from learning.summary import create_state_summary, get_top_n

__all__ = [
    "BatchRunResult",
    "CircuitBreaker",
    "ConsentCache",
    "EVENT_SIGNAL_DEFAULTS",
    "EntityType",
    "ExtractedFeatures",
    "FashionStateService",
    "FashionStateSummary",
    "LearningEvent",
    "LearningEventType",
    "LearningEventsService",
    "LearningJobs",
    "LearningPrivacyService",
    "PriceBracket",
    "StalenessScanner",
    "UserFashionState",
    "compute_fashion_state",
    "create_state_summary",
    "get_fashion_state_service",
    "get_learning_events_service",
    "get_learning_jobs",
    "get_learning_privacy_service",
    "get_top_n",
    "reset_learning_services",
]
