"""In-memory implementation of CacheStore.

This is the default cache backend. It keeps entries in a dictionary guarded
by a lock and takes its notion of "now" from an injected clock, so expiry can
be tested without real delays.
"""

import threading
import time
from collections import Counter
from collections.abc import Callable

from character_enrichment.entities import CacheEntryEntity


class InMemoryCacheRepository:
    """Dictionary-backed implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Expiration is lazy: an expired entry stays in memory, but every lookup
    treats it as a miss until sweep_expired() removes it.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        """Initialize the repository.

        Args:
            clock: Returns the current Unix time. Defaults to time.time.
        """
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntryEntity] = {}
        self._lock = threading.Lock()

    @classmethod
    def create(cls, clock: Callable[[], float] | None = None) -> "InMemoryCacheRepository":
        """Factory method to create InMemoryCacheRepository with defaults."""
        return cls(clock=clock)

    def get(self, key: str) -> CacheEntryEntity | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def put(self, key: str, payload: str, ttl: int, category: str) -> CacheEntryEntity:
        now = self._clock()
        entry = CacheEntryEntity(
            key=key,
            payload=payload,
            category=category,
            created_at=now,
            expires_at=now + ttl,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_category(self, category: str) -> int:
        with self._lock:
            keys = [k for k, e in self._entries.items() if e.category == category]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def sweep_expired(self) -> int:
        now = self._clock()
        count = 0
        with self._lock:
            for key, entry in list(self._entries.items()):
                if entry.is_expired(now):
                    del self._entries[key]
                    count += 1
        return count

    def stats(self) -> dict:
        # Copy under the lock, aggregate outside it
        with self._lock:
            entries = list(self._entries.values())
        now = self._clock()
        return {
            "total_entries": len(entries),
            "per_category_counts": dict(Counter(e.category for e in entries)),
            "expired_count": sum(1 for e in entries if e.is_expired(now)),
            "approximate_byte_size": sum(e.approximate_size for e in entries),
        }

    def health_check(self) -> bool:
        return True
