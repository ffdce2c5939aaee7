"""
Supabase-backed learning stores.

Tables (see sql/learning_functions.sql):
- users: learning_consent, learning_consent_ts
- user_learning_events: append-only event log, UNIQUE (user_id, client_event_id)
- user_fashion_state: one row per user, keyed by user_id

Errors from PostgREST propagate to the caller; each service decides
whether a failure is soft (logged and defaulted) or hard (re-raised).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client

from config.constants import (
    FASHION_STATE_TABLE,
    LEARNING_EVENTS_TABLE,
    STALE_USERS_RPC,
    USERS_TABLE,
)
from core.clock import Clock, SystemClock, ensure_utc
from learning.models import LearningEvent, UserFashionState


# PostgREST caps un-ranged selects at its max-rows setting (1000 by default)
EVENT_PAGE_SIZE = 1000


class SupabaseConsentStore:
    """Consent flag on the users table."""

    def __init__(self, supabase: Client, clock: Optional[Clock] = None):
        self._supabase = supabase
        self._clock = clock or SystemClock()

    def read_consent(self, user_id: str) -> bool:
        result = (
            self._supabase
            .table(USERS_TABLE)
            .select("learning_consent")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return False
        return result.data[0].get("learning_consent") is True

    def write_consent(self, user_id: str, enabled: bool) -> None:
        self._supabase.table(USERS_TABLE).update({
            "learning_consent": bool(enabled),
            "learning_consent_ts": self._clock.now().isoformat(),
        }).eq("id", user_id).execute()


class SupabaseEventStore:
    """user_learning_events table."""

    def __init__(self, supabase: Client):
        self._supabase = supabase

    def insert_event(self, event: LearningEvent) -> bool:
        table = self._supabase.table(LEARNING_EVENTS_TABLE)
        row = event.to_row()

        if event.idempotency_key is None:
            table.insert(row).execute()
            return True

        # ON CONFLICT DO NOTHING: a duplicate comes back with no rows
        result = table.upsert(
            row,
            on_conflict="user_id,client_event_id",
            ignore_duplicates=True,
        ).execute()
        return bool(result.data)

    def query_events(self, user_id: str, since: datetime) -> List[LearningEvent]:
        since_iso = ensure_utc(since).isoformat()
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            result = (
                self._supabase
                .table(LEARNING_EVENTS_TABLE)
                .select(
                    "user_id,event_type,event_ts,entity_type,entity_id,"
                    "entity_signature,signal_polarity,signal_weight,context,"
                    "extracted_features,source_feature,client_event_id,schema_version"
                )
                .eq("user_id", user_id)
                .gt("event_ts", since_iso)
                .order("event_ts")
                .range(start, start + EVENT_PAGE_SIZE - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < EVENT_PAGE_SIZE:
                break
            start += EVENT_PAGE_SIZE
        return [LearningEvent.from_row(row) for row in rows]

    def delete_events(self, user_id: str) -> int:
        result = (
            self._supabase
            .table(LEARNING_EVENTS_TABLE)
            .delete()
            .eq("user_id", user_id)
            .execute()
        )
        return len(result.data or [])

    def count_events(self, user_id: str) -> int:
        result = (
            self._supabase
            .table(LEARNING_EVENTS_TABLE)
            .select("id", count="exact")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return int(result.count or 0)

    def delete_events_before(self, cutoff: datetime) -> int:
        result = (
            self._supabase
            .table(LEARNING_EVENTS_TABLE)
            .delete()
            .lt("event_ts", ensure_utc(cutoff).isoformat())
            .execute()
        )
        return len(result.data or [])


class SupabaseStateStore:
    """user_fashion_state table plus the stale-user RPC."""

    def __init__(self, supabase: Client, clock: Optional[Clock] = None):
        self._supabase = supabase
        self._clock = clock or SystemClock()

    def upsert_state(self, state: UserFashionState) -> None:
        row = state.to_row()
        row["updated_at"] = self._clock.now().isoformat()
        self._supabase.table(FASHION_STATE_TABLE).upsert(
            row,
            on_conflict="user_id",
        ).execute()

    def read_state(self, user_id: str) -> Optional[UserFashionState]:
        result = (
            self._supabase
            .table(FASHION_STATE_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return UserFashionState.from_row(result.data[0])

    def delete_state(self, user_id: str) -> None:
        self._supabase.table(FASHION_STATE_TABLE).delete().eq("user_id", user_id).execute()

    def list_stale_user_ids(self, threshold: datetime, limit: int) -> List[str]:
        result = self._supabase.rpc(STALE_USERS_RPC, {
            "stale_before": ensure_utc(threshold).isoformat(),
            "max_rows": limit,
        }).execute()
        return [row["user_id"] for row in (result.data or [])]
