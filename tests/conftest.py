"""
Pytest configuration and shared fixtures for the learning loop tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

from config.feature_flags import LearningFlags
from core.clock import FrozenClock


FROZEN_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Fixtures: Time
# ============================================================================

@pytest.fixture
def clock() -> FrozenClock:
    """Clock pinned at FROZEN_NOW; advance it explicitly."""
    return FrozenClock(FROZEN_NOW)


# ============================================================================
# Fixtures: Flags
# ============================================================================

@pytest.fixture
def enabled_flags() -> LearningFlags:
    """Events and state on, shadow mode off."""
    return LearningFlags(events_enabled=True, state_enabled=True, shadow_mode=False)


@pytest.fixture
def disabled_flags() -> LearningFlags:
    return LearningFlags(events_enabled=False, state_enabled=False, shadow_mode=True)


# ============================================================================
# Fixtures: Stores
# ============================================================================

@pytest.fixture
def consent_store():
    """In-memory consent store where test-user-001 has opted in."""
    from learning.stores import InMemoryConsentStore
    return InMemoryConsentStore({"test-user-001": True})


@pytest.fixture
def event_store():
    from learning.stores import InMemoryEventStore
    return InMemoryEventStore()


@pytest.fixture
def state_store(event_store):
    from learning.stores import InMemoryStateStore
    return InMemoryStateStore(event_store)


@pytest.fixture
def consent_cache(consent_store, clock):
    from learning.consent_cache import ConsentCache
    return ConsentCache(consent_store, clock=clock)


# ============================================================================
# Fixtures: Services
# ============================================================================

@pytest.fixture
def events_service(event_store, consent_cache, enabled_flags, clock):
    """Events service with a generous timeout so in-memory writes never race it."""
    from config.constants import EventLoggingConfig
    from learning.events import LearningEventsService

    service = LearningEventsService(
        event_store=event_store,
        consent_cache=consent_cache,
        flags=enabled_flags,
        config=EventLoggingConfig(TIMEOUT_MS=2000),
        clock=clock,
    )
    yield service
    service.shutdown(wait=True)


@pytest.fixture
def fashion_state_service(event_store, state_store, enabled_flags, clock):
    from config.constants import BatchJobConfig
    from learning.fashion_state import FashionStateService

    service = FashionStateService(
        event_store=event_store,
        state_store=state_store,
        flags=enabled_flags,
        batch_config=BatchJobConfig(STATE_READ_TIMEOUT_MS=2000),
        clock=clock,
    )
    yield service
    service.shutdown(wait=True)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def make_event(clock):
    """
    Factory for LearningEvents.

    Usage:
        make_event(LearningEventType.PRODUCT_SAVED, brands=["Nike"], age_days=3)
    """
    from learning.models import EVENT_SIGNAL_DEFAULTS, EntityType, LearningEvent

    def _make(
        event_type,
        user_id: str = "test-user-001",
        age_days: float = 0.0,
        context: dict = None,
        idempotency_key: str = None,
        polarity: int = None,
        weight: float = None,
        **features,
    ) -> LearningEvent:
        defaults = EVENT_SIGNAL_DEFAULTS[event_type]
        return LearningEvent(
            user_id=user_id,
            event_type=event_type,
            entity_type=EntityType.PRODUCT,
            entity_id="test-sku-001",
            signal_polarity=defaults.polarity if polarity is None else polarity,
            signal_weight=defaults.weight if weight is None else weight,
            extracted_features=features,
            context=context or {},
            source_feature="test",
            idempotency_key=idempotency_key,
            event_ts=clock.now() - timedelta(days=age_days),
        )

    return _make


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock RPC calls
    mock_client.rpc.return_value.execute.return_value.data = []

    # Mock table operations
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value.data = [{"id": "test"}]
    mock_client.table.return_value.upsert.return_value.execute.return_value.data = [{"id": "test"}]

    return mock_client


@pytest.fixture
def mock_supabase(mock_supabase_client):
    """Patch Supabase client creation."""
    with patch("config.database.create_client", return_value=mock_supabase_client):
        yield mock_supabase_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests if no credentials are configured."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")

    supabase_url = os.getenv("SUPABASE_URL")

    for item in items:
        if "supabase" in item.keywords and not supabase_url:
            item.add_marker(skip_supabase)
