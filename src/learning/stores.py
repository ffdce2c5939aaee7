"""
Durable store interfaces for the learning loop, plus in-memory backends.

Three stores back the learning loop:
1. ConsentStore: per-user learning consent flag
2. EventStore: append-only user_learning_events log
3. StateStore: one user_fashion_state row per user

Supports two backends:
1. InMemory: For development/testing (LEARNING_STORE_BACKEND=memory)
2. Supabase: For production (see learning.supabase_stores)
"""

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Protocol, Set, Tuple

from core.clock import ensure_utc
from learning.models import LearningEvent, UserFashionState


# =============================================================================
# Interfaces
# =============================================================================

class ConsentStore(Protocol):
    def read_consent(self, user_id: str) -> bool:
        """Durable consent flag; False when the user is unknown."""
        ...

    def write_consent(self, user_id: str, enabled: bool) -> None:
        ...


class EventStore(Protocol):
    def insert_event(self, event: LearningEvent) -> bool:
        """Insert-or-ignore. Returns False when the idempotency key already exists."""
        ...

    def query_events(self, user_id: str, since: datetime) -> List[LearningEvent]:
        """Events with event_ts > since, oldest first."""
        ...

    def delete_events(self, user_id: str) -> int:
        ...

    def count_events(self, user_id: str) -> int:
        ...

    def delete_events_before(self, cutoff: datetime) -> int:
        ...


class StateStore(Protocol):
    def upsert_state(self, state: UserFashionState) -> None:
        ...

    def read_state(self, user_id: str) -> Optional[UserFashionState]:
        ...

    def delete_state(self, user_id: str) -> None:
        ...

    def list_stale_user_ids(self, threshold: datetime, limit: int) -> List[str]:
        """Users with events and either no state or state computed before threshold."""
        ...


# =============================================================================
# In-Memory Backends
# =============================================================================

class InMemoryConsentStore:
    """Consent flags in a dict. Unknown users have not consented."""

    def __init__(self, consents: Optional[Dict[str, bool]] = None):
        self._consents: Dict[str, bool] = dict(consents or {})
        self._lock = Lock()

    def read_consent(self, user_id: str) -> bool:
        with self._lock:
            return self._consents.get(user_id) is True

    def write_consent(self, user_id: str, enabled: bool) -> None:
        with self._lock:
            self._consents[user_id] = bool(enabled)


class InMemoryEventStore:
    """
    Event log in a list.

    The (user_id, idempotency_key) index mirrors the unique constraint on
    the real table: it only applies when the key is present.
    """

    def __init__(self):
        self._events: List[LearningEvent] = []
        self._keys: Set[Tuple[str, str]] = set()
        self._lock = Lock()

    def insert_event(self, event: LearningEvent) -> bool:
        with self._lock:
            if event.idempotency_key is not None:
                key = (event.user_id, event.idempotency_key)
                if key in self._keys:
                    return False
                self._keys.add(key)
            self._events.append(event)
            return True

    def query_events(self, user_id: str, since: datetime) -> List[LearningEvent]:
        since = ensure_utc(since)
        with self._lock:
            matches = [
                e for e in self._events
                if e.user_id == user_id and e.event_ts > since
            ]
        return sorted(matches, key=lambda e: e.event_ts)

    def delete_events(self, user_id: str) -> int:
        with self._lock:
            kept = [e for e in self._events if e.user_id != user_id]
            deleted = len(self._events) - len(kept)
            self._events = kept
            self._keys = {k for k in self._keys if k[0] != user_id}
            return deleted

    def count_events(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for e in self._events if e.user_id == user_id)

    def delete_events_before(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        with self._lock:
            kept = [e for e in self._events if e.event_ts >= cutoff]
            removed = [e for e in self._events if e.event_ts < cutoff]
            self._events = kept
            for e in removed:
                if e.idempotency_key is not None:
                    self._keys.discard((e.user_id, e.idempotency_key))
            return len(removed)

    def user_ids(self) -> List[str]:
        """Distinct user ids with at least one event, in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(e.user_id for e in self._events))


class InMemoryStateStore:
    """
    Fashion state rows in a dict.

    Needs the event store to answer the stale-user scan, which joins events
    against state.
    """

    def __init__(self, event_store: InMemoryEventStore):
        self._event_store = event_store
        self._states: Dict[str, UserFashionState] = {}
        self._lock = Lock()

    def upsert_state(self, state: UserFashionState) -> None:
        with self._lock:
            self._states[state.user_id] = state.model_copy(deep=True)

    def read_state(self, user_id: str) -> Optional[UserFashionState]:
        with self._lock:
            state = self._states.get(user_id)
            return state.model_copy(deep=True) if state else None

    def delete_state(self, user_id: str) -> None:
        with self._lock:
            self._states.pop(user_id, None)

    def list_stale_user_ids(self, threshold: datetime, limit: int) -> List[str]:
        threshold = ensure_utc(threshold)
        stale: List[str] = []
        for user_id in self._event_store.user_ids():
            if len(stale) >= limit:
                break
            with self._lock:
                state = self._states.get(user_id)
            if state is None or state.last_computed_at < threshold:
                stale.append(user_id)
        return stale
