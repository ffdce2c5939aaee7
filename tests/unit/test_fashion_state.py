"""
Tests for FashionStateService.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from config.constants import BatchJobConfig
from config.feature_flags import LearningFlags
from learning.fashion_state import FashionStateService
from learning.models import LearningEventType, PriceBracket


def _seed(event_store, make_event, count=10, **features):
    for _ in range(count):
        event_store.insert_event(make_event(LearningEventType.PRODUCT_SAVED, **features))


class TestComputeAndSave:

    def test_state_saved(self, fashion_state_service, event_store, state_store, make_event, clock):
        _seed(event_store, make_event, count=3, brands=["Nike"])

        state = fashion_state_service.compute_and_save_state("test-user-001")

        stored = state_store.read_state("test-user-001")
        assert stored == state
        assert stored.brand_scores["nike"] == pytest.approx(1.8)
        assert stored.last_computed_at == clock.now()

    def test_events_outside_window_ignored(self, fashion_state_service, event_store, make_event):
        event_store.insert_event(make_event(LearningEventType.PRODUCT_PURCHASED, age_days=181, brands=["Old"]))
        event_store.insert_event(make_event(LearningEventType.PRODUCT_PURCHASED, age_days=179, brands=["New"]))

        state = fashion_state_service.compute_and_save_state("test-user-001")

        assert "old" not in state.brand_scores
        assert "new" in state.brand_scores
        assert state.events_processed_count == 1

    def test_recompute_is_idempotent(self, fashion_state_service, event_store, make_event):
        _seed(event_store, make_event, count=12, colors=["Black"])

        first = fashion_state_service.compute_and_save_state("test-user-001")
        second = fashion_state_service.compute_and_save_state("test-user-001")

        assert first == second

    def test_recompute_replaces_previous_state(self, fashion_state_service, event_store, make_event, clock):
        event_store.insert_event(make_event(
            LearningEventType.PRODUCT_PURCHASED, context={"price": 500}, brands=["Gucci"],
        ))
        first = fashion_state_service.compute_and_save_state("test-user-001")
        assert first.price_bracket == PriceBracket.LUXURY

        clock.advance(days=181)
        second = fashion_state_service.compute_and_save_state("test-user-001")

        assert second.brand_scores == {}
        assert second.price_bracket is None
        assert second.avg_purchase_price is None

    def test_store_errors_propagate(self, event_store, state_store, enabled_flags, clock):
        state_store.upsert_state = MagicMock(side_effect=RuntimeError("write failed"))
        service = FashionStateService(event_store, state_store, flags=enabled_flags, clock=clock)
        try:
            with pytest.raises(RuntimeError):
                service.compute_and_save_state("test-user-001")
        finally:
            service.shutdown(wait=True)


class TestReads:

    def test_get_state_missing(self, fashion_state_service):
        assert fashion_state_service.get_state("nobody") is None

    def test_get_state_propagates(self, fashion_state_service, state_store):
        state_store.read_state = MagicMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            fashion_state_service.get_state("test-user-001")

    def test_fallback_returns_active_state(self, fashion_state_service, event_store, make_event):
        _seed(event_store, make_event, count=10, brands=["Nike"])
        fashion_state_service.compute_and_save_state("test-user-001")

        state = fashion_state_service.get_state_with_fallback("test-user-001")

        assert state is not None
        assert state.is_cold_start is False

    def test_fallback_hides_cold_start(self, fashion_state_service, event_store, make_event):
        _seed(event_store, make_event, count=9)
        fashion_state_service.compute_and_save_state("test-user-001")

        assert fashion_state_service.get_state_with_fallback("test-user-001") is None

    def test_fallback_none_when_state_disabled(self, event_store, state_store, make_event, clock):
        service = FashionStateService(
            event_store, state_store,
            flags=LearningFlags(events_enabled=True, state_enabled=False),
            clock=clock,
        )
        try:
            _seed(event_store, make_event, count=10)
            service.compute_and_save_state("test-user-001")

            assert service.get_state_with_fallback("test-user-001") is None
        finally:
            service.shutdown(wait=True)

    def test_fallback_none_on_error(self, fashion_state_service, state_store):
        state_store.read_state = MagicMock(side_effect=RuntimeError("db down"))

        assert fashion_state_service.get_state_with_fallback("test-user-001") is None

    def test_fallback_none_on_timeout(self, event_store, state_store, enabled_flags, clock):
        release = threading.Event()

        def slow_read(user_id):
            release.wait(timeout=5)
            return None

        state_store.read_state = slow_read
        service = FashionStateService(
            event_store, state_store,
            flags=enabled_flags,
            batch_config=BatchJobConfig(STATE_READ_TIMEOUT_MS=20),
            clock=clock,
        )
        try:
            assert service.get_state_with_fallback("test-user-001") is None
        finally:
            release.set()
            service.shutdown(wait=True)

    def test_hung_store_does_not_build_a_backlog(self, event_store, state_store, enabled_flags, clock):
        release = threading.Event()
        calls = []

        def hanging_read(user_id):
            calls.append(user_id)
            release.wait(timeout=5)
            return None

        state_store.read_state = hanging_read
        service = FashionStateService(
            event_store, state_store,
            flags=enabled_flags,
            batch_config=BatchJobConfig(STATE_READ_TIMEOUT_MS=5, STATE_READ_WORKERS=2),
            clock=clock,
        )
        try:
            for _ in range(200):
                assert service.get_state_with_fallback("test-user-001") is None
        finally:
            release.set()
            service.shutdown(wait=True)

        # Only the reads holding a slot ever reached the store
        assert len(calls) == 2

    def test_reads_resume_after_store_recovers(self, event_store, state_store, enabled_flags, make_event, clock):
        _seed(event_store, make_event, count=10, brands=["Nike"])
        release = threading.Event()
        real_read = state_store.read_state

        def hanging_read(user_id):
            release.wait(timeout=5)
            return real_read(user_id)

        service = FashionStateService(
            event_store, state_store,
            flags=enabled_flags,
            batch_config=BatchJobConfig(STATE_READ_TIMEOUT_MS=5, STATE_READ_WORKERS=2),
            clock=clock,
        )
        try:
            service.compute_and_save_state("test-user-001")
            state_store.read_state = hanging_read
            for _ in range(50):
                assert service.get_state_with_fallback("test-user-001") is None

            release.set()
            state = None
            deadline = time.monotonic() + 2.0
            while state is None and time.monotonic() < deadline:
                state = service.get_state_with_fallback("test-user-001", timeout_ms=500)
                if state is None:
                    time.sleep(0.01)

            assert state is not None
            assert state.brand_scores["nike"] > 0
        finally:
            release.set()
            service.shutdown(wait=True)

    def test_fallback_none_after_shutdown(self, event_store, state_store, enabled_flags, clock):
        service = FashionStateService(event_store, state_store, flags=enabled_flags, clock=clock)
        service.shutdown(wait=True)

        assert service.get_state_with_fallback("test-user-001") is None
        # The slot taken for the rejected submit was given back
        assert service._read_slots.acquire(blocking=False) is True

    def test_state_summary(self, fashion_state_service, event_store, make_event):
        _seed(event_store, make_event, count=10, brands=["Nike"], colors=["Black"])
        event_store.insert_event(make_event(LearningEventType.POST_DISMISSED, brands=["Shein"]))
        fashion_state_service.compute_and_save_state("test-user-001")

        summary = fashion_state_service.get_state_summary("test-user-001")

        assert summary.top_brands == ["nike"]
        assert summary.avoid_brands == ["shein"]
        assert summary.top_colors == ["black"]
        assert summary.is_cold_start is False

    def test_state_summary_none_without_state(self, fashion_state_service):
        assert fashion_state_service.get_state_summary("nobody") is None


class TestStaleness:

    def test_missing_state_is_stale(self, fashion_state_service):
        assert fashion_state_service.is_state_stale("nobody") is True

    def test_fresh_then_stale(self, fashion_state_service, event_store, make_event, clock):
        _seed(event_store, make_event, count=1)
        fashion_state_service.compute_and_save_state("test-user-001")

        assert fashion_state_service.is_state_stale("test-user-001") is False
        clock.advance(seconds=3601)
        assert fashion_state_service.is_state_stale("test-user-001") is True

    def test_read_error_is_stale(self, fashion_state_service, state_store):
        state_store.read_state = MagicMock(side_effect=RuntimeError("db down"))

        assert fashion_state_service.is_state_stale("test-user-001") is True


class TestDelete:

    def test_delete_user_state(self, fashion_state_service, event_store, state_store, make_event):
        _seed(event_store, make_event, count=1)
        fashion_state_service.compute_and_save_state("test-user-001")

        fashion_state_service.delete_user_state("test-user-001")

        assert state_store.read_state("test-user-001") is None

    def test_delete_propagates(self, fashion_state_service, state_store):
        state_store.delete_state = MagicMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            fashion_state_service.delete_user_state("test-user-001")
