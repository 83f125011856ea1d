"""Cache storage protocol.

Defines the interface for any key/value backend that stores cached AI
computations with a TTL and a category tag.

Implementations can include:
- In-process dictionary (default, tests)
- Redis
- Any other key/value store with atomic per-key writes
"""

from typing import Protocol, runtime_checkable

from character_enrichment.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Implementations raise CacheStoreError when the backend is unavailable.

    Example:
        ```python
        from character_enrichment.protocols import CacheStore

        store: CacheStore = InMemoryCacheRepository()
        store: CacheStore = RedisCacheRepository.create()
        ```
    """

    def get(self, key: str) -> CacheEntryEntity | None:
        """Look up an entry.

        Args:
            key: The composite cache key

        Returns:
            The entry, or None if absent or expired
        """
        ...

    def put(self, key: str, payload: str, ttl: int, category: str) -> CacheEntryEntity:
        """Store an entry, overwriting any existing entry for the key.

        Args:
            key: The composite cache key
            payload: Serialized result
            ttl: Time-to-live in seconds
            category: Category tag

        Returns:
            The stored entry
        """
        ...

    def invalidate(self, key: str) -> bool:
        """Delete a specific entry.

        Returns:
            True if an entry was deleted, False otherwise
        """
        ...

    def invalidate_category(self, category: str) -> int:
        """Delete every entry of a category.

        Returns:
            Number of entries deleted
        """
        ...

    def sweep_expired(self) -> int:
        """Remove expired entries. Never removes live entries.

        Returns:
            Number of entries deleted
        """
        ...

    def stats(self) -> dict:
        """Get aggregate statistics.

        Returns:
            Dictionary with total_entries, per_category_counts,
            expired_count and approximate_byte_size
        """
        ...

    def health_check(self) -> bool:
        """Check if the backend is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...
