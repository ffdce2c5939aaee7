"""
Tests for stale user detection.
"""

from unittest.mock import MagicMock

from learning.models import LearningEventType
from learning.scoring import compute_fashion_state
from learning.staleness import StalenessScanner


class TestStalenessScanner:

    def test_users_without_state_are_stale(self, event_store, state_store, make_event, clock):
        event_store.insert_event(make_event(LearningEventType.POST_LIKED, user_id="a"))
        event_store.insert_event(make_event(LearningEventType.POST_LIKED, user_id="b"))

        scanner = StalenessScanner(state_store, clock=clock)

        assert sorted(scanner.get_stale_user_ids()) == ["a", "b"]

    def test_fresh_state_not_stale(self, event_store, state_store, make_event, clock):
        event_store.insert_event(make_event(LearningEventType.POST_LIKED, user_id="a"))
        state_store.upsert_state(compute_fashion_state("a", [], clock.now()))

        scanner = StalenessScanner(state_store, clock=clock)

        assert scanner.get_stale_user_ids() == []

        clock.advance(seconds=3601)
        assert scanner.get_stale_user_ids() == ["a"]

    def test_users_without_events_ignored(self, state_store, clock):
        state_store.upsert_state(compute_fashion_state("ghost", [], clock.now()))
        clock.advance(days=2)

        assert StalenessScanner(state_store, clock=clock).get_stale_user_ids() == []

    def test_limit(self, event_store, state_store, make_event, clock):
        for i in range(5):
            event_store.insert_event(make_event(LearningEventType.POST_LIKED, user_id=f"user-{i}"))

        scanner = StalenessScanner(state_store, clock=clock)

        assert len(scanner.get_stale_user_ids(limit=3)) == 3
        assert scanner.get_stale_user_ids(limit=0) == []

    def test_limit_enforced_on_store_result(self, clock):
        store = MagicMock()
        store.list_stale_user_ids.return_value = ["a", "b", "c", "d"]

        assert StalenessScanner(store, clock=clock).get_stale_user_ids(limit=2) == ["a", "b"]

    def test_scan_failure_returns_empty(self, clock):
        store = MagicMock()
        store.list_stale_user_ids.side_effect = RuntimeError("rpc failed")

        assert StalenessScanner(store, clock=clock).get_stale_user_ids() == []
