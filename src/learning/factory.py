"""
Learning service factory.

Builds the learning services once per process from settings and caches
them. LEARNING_STORE_BACKEND picks the stores:

- supabase: Postgres through the shared Supabase client (production)
- memory: in-process stores (development / tests)

Call reset_learning_services() after changing settings in tests.
"""

from functools import lru_cache
from typing import NamedTuple

from config.database import get_supabase_client
from config.feature_flags import LearningFlags
from config.settings import get_settings
from core.clock import SystemClock
from core.logging import get_logger
from learning.consent_cache import ConsentCache
from learning.events import LearningEventsService
from learning.fashion_state import FashionStateService
from learning.jobs import LearningJobs
from learning.privacy import LearningPrivacyService
from learning.staleness import StalenessScanner
from learning.stores import (
    ConsentStore,
    EventStore,
    InMemoryConsentStore,
    InMemoryEventStore,
    InMemoryStateStore,
    StateStore,
)
from learning.supabase_stores import SupabaseConsentStore, SupabaseEventStore, SupabaseStateStore

logger = get_logger(__name__)


class LearningStores(NamedTuple):
    consent: ConsentStore
    events: EventStore
    state: StateStore


@lru_cache(maxsize=1)
def get_learning_stores() -> LearningStores:
    """Stores for the configured backend."""
    settings = get_settings()
    clock = get_clock()

    if settings.learning_store_backend == "memory":
        logger.info("Using in-memory learning stores")
        event_store = InMemoryEventStore()
        return LearningStores(
            consent=InMemoryConsentStore(),
            events=event_store,
            state=InMemoryStateStore(event_store),
        )

    supabase = get_supabase_client()
    return LearningStores(
        consent=SupabaseConsentStore(supabase, clock),
        events=SupabaseEventStore(supabase),
        state=SupabaseStateStore(supabase, clock),
    )


@lru_cache(maxsize=1)
def get_clock() -> SystemClock:
    return SystemClock()


@lru_cache(maxsize=1)
def get_learning_flags() -> LearningFlags:
    return LearningFlags.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_consent_cache() -> ConsentCache:
    return ConsentCache(get_learning_stores().consent, clock=get_clock())


@lru_cache(maxsize=1)
def get_learning_events_service() -> LearningEventsService:
    return LearningEventsService(
        event_store=get_learning_stores().events,
        consent_cache=get_consent_cache(),
        flags=get_learning_flags(),
        clock=get_clock(),
    )


@lru_cache(maxsize=1)
def get_fashion_state_service() -> FashionStateService:
    stores = get_learning_stores()
    return FashionStateService(
        event_store=stores.events,
        state_store=stores.state,
        flags=get_learning_flags(),
        clock=get_clock(),
    )


@lru_cache(maxsize=1)
def get_learning_jobs() -> LearningJobs:
    return LearningJobs(
        fashion_state=get_fashion_state_service(),
        events=get_learning_events_service(),
        scanner=StalenessScanner(get_learning_stores().state, clock=get_clock()),
        flags=get_learning_flags(),
        clock=get_clock(),
    )


@lru_cache(maxsize=1)
def get_learning_privacy_service() -> LearningPrivacyService:
    return LearningPrivacyService(
        consent_store=get_learning_stores().consent,
        consent_cache=get_consent_cache(),
        events=get_learning_events_service(),
        fashion_state=get_fashion_state_service(),
        flags=get_learning_flags(),
    )


def reset_learning_services() -> None:
    """Drop every cached service (tests, settings reload)."""
    for getter in (
        get_learning_privacy_service,
        get_learning_jobs,
        get_fashion_state_service,
        get_learning_events_service,
        get_consent_cache,
        get_learning_flags,
        get_learning_stores,
        get_clock,
    ):
        getter.cache_clear()
