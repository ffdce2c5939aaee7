"""
Consent cache for learning events.

Every event write is gated on the user's learning consent. Values are
cached for a short TTL and can be invalidated immediately when a user
changes their consent.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config.constants import DEFAULT_CONSENT_CACHE_CONFIG
from core.clock import Clock, SystemClock
from core.logging import LoggerMixin
from learning.stores import ConsentStore


@dataclass
class ConsentCacheEntry:
    """Cached consent value with its monotonic expiry time."""

    has_consent: bool
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ConsentCache(LoggerMixin):
    """
    Thread-safe read-through cache over the durable consent flag.

    A failed lookup fails closed (no consent) and is not cached, so the
    next call retries the read.

    Usage:
        cache = ConsentCache(consent_store)

        if cache.check("user_123"):
            ...

        # After the user toggles consent
        cache.invalidate("user_123")
    """

    def __init__(
        self,
        consent_store: ConsentStore,
        ttl_seconds: float = DEFAULT_CONSENT_CACHE_CONFIG.TTL_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize consent cache.

        Args:
            consent_store: Durable consent flag reader
            ttl_seconds: How long a read stays valid (default 60s)
            clock: Time source (default: system clock)
        """
        self._store = consent_store
        self._ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._entries: Dict[str, ConsentCacheEntry] = {}
        self._hits = 0
        self._misses = 0
        # Bumped by invalidate/clear; a read that raced one is not cached
        self._generation = 0

    def check(self, user_id: str) -> bool:
        """
        Check whether the user has learning consent.

        Args:
            user_id: User identifier

        Returns:
            Cached value if fresh, otherwise the freshly read durable flag.
            False if the read fails.
        """
        now = self._clock.monotonic()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None and not entry.is_expired(now):
                self._hits += 1
                return entry.has_consent
            self._misses += 1
            generation = self._generation

        # Store read happens outside the lock
        try:
            has_consent = self._store.read_consent(user_id) is True
        except Exception as e:
            self.logger.warning(
                "Consent lookup failed, treating as no consent",
                user_id=user_id,
                error=str(e),
            )
            return False

        with self._lock:
            if generation == self._generation:
                self._entries[user_id] = ConsentCacheEntry(
                    has_consent=has_consent,
                    expires_at=now + self._ttl_seconds,
                )
        return has_consent

    def invalidate(self, user_id: str) -> None:
        """
        Drop the cached value for a user.

        Call this whenever the user's consent changes so a revoke takes
        effect on the next event rather than after the TTL.
        """
        with self._lock:
            self._entries.pop(user_id, None)
            self._generation += 1

    def clear(self) -> None:
        """Drop every cached value."""
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def clear_expired(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock.monotonic()
        with self._lock:
            expired = [k for k, v in self._entries.items() if v.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            self.logger.debug("Cleared expired consent entries", count=len(expired))
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics for monitoring.

        Returns:
            Dict with size, hits, misses and hit_rate
        """
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "ttl_seconds": self._ttl_seconds,
            }
