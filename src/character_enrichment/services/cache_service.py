"""Cache service for core business logic.

This service sits between the enrichment flow and the cache store: it
derives keys, applies per-category TTLs, (de)serializes payloads and keeps
hit/miss counters.
"""

import hashlib
import json
import logging

from character_enrichment.config import settings
from character_enrichment.exceptions import AIInvocationError, CacheStoreError
from character_enrichment.models import CacheCategory, CacheMetrics, EnrichmentPayload, parse_payload
from character_enrichment.protocols import CacheStore

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Lowercase and collapse whitespace so equivalent names share a key."""
    return " ".join(name.split()).lower()


def build_cache_key(category: CacheCategory | str, *parts: object, max_length: int | None = None) -> str:
    """Build a deterministic cache key from a category and ordered parts.

    Long keys have their parts replaced by a SHA-256 digest.

    Args:
        category: Category tag, used as the key prefix
        *parts: Ordered parameter values (None becomes an empty segment)
        max_length: Maximum key length. Defaults to settings.cache_key_max_length.

    Returns:
        "<category>:<part>:<part>..." or "<category>:<sha256>"

    Example:
        ```python
        build_cache_key(CacheCategory.CHARACTER_ENRICHMENT, "c1", "spike spiegel")
        # 'character_enrichment:c1:spike spiegel'
        ```
    """
    prefix = category.value if isinstance(category, CacheCategory) else str(category)
    body = ":".join("" if part is None else str(part) for part in parts)
    key = f"{prefix}:{body}"

    limit = max_length or settings.cache_key_max_length
    if len(key) > limit:
        digest = hashlib.sha256(body.encode("utf-8")).hexdigest()
        key = f"{prefix}:{digest}"
    return key


class CacheService:
    """Core cache orchestration service.

    This service depends on the CacheStore PROTOCOL, not a concrete backend,
    so the in-memory store and Redis are interchangeable.

    Lookups and writes made on behalf of an enrichment fail open: a store
    error is logged and reported as a miss (or a skipped write), never as an
    enrichment failure. Administrative operations (invalidate, sweep, stats)
    propagate CacheStoreError.

    Example:
        ```python
        from character_enrichment.repositories import InMemoryCacheRepository
        from character_enrichment.services import CacheService

        cache = CacheService.create(repository=InMemoryCacheRepository())
        key = cache.key_for(CacheCategory.CHARACTER_ENRICHMENT, "c1", "Spike Spiegel")
        payload = cache.lookup(CacheCategory.CHARACTER_ENRICHMENT, key)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        ttl_by_category: dict[CacheCategory, int] | None = None,
        key_max_length: int | None = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            repository: Cache storage backend (required).
            ttl_by_category: TTL in seconds per category. Missing categories use settings.
            key_max_length: Maximum key length before hashing. Defaults to settings.
        """
        self._repository = repository
        self._ttls = {
            CacheCategory.CHARACTER_ENRICHMENT: settings.cache_ttl,
            CacheCategory.RELATIONSHIP_ANALYSIS: settings.cache_ttl_relationship_analysis,
            CacheCategory.TIMELINE_ANALYSIS: settings.cache_ttl_timeline_analysis,
        }
        self._ttls.update(ttl_by_category or {})
        self._key_max_length = key_max_length or settings.cache_key_max_length
        self._metrics = CacheMetrics()

    @classmethod
    def create(
        cls,
        repository: CacheStore,
        ttl_by_category: dict[CacheCategory, int] | None = None,
    ) -> "CacheService":
        """Factory method to create CacheService with sensible defaults.

        Args:
            repository: Cache storage backend (required).
            ttl_by_category: Per-category TTL overrides. If None, uses settings.

        Returns:
            Configured CacheService instance
        """
        return cls(repository=repository, ttl_by_category=ttl_by_category)

    def key_for(self, category: CacheCategory, entity_id: str, name: str) -> str:
        """Cache key of one entity for one category."""
        return build_cache_key(category, entity_id, normalize_name(name), max_length=self._key_max_length)

    def ttl_for(self, category: CacheCategory) -> int:
        return self._ttls[category]

    def lookup(self, category: CacheCategory, key: str) -> EnrichmentPayload | None:
        """Return the cached payload for a key, or None on a miss.

        Store errors and undecodable entries count as misses.
        """
        try:
            entry = self._repository.get(key)
        except CacheStoreError as e:
            logger.warning(f"Cache lookup failed for {key}, treating as miss: {e}")
            self._metrics.record_error()
            self._metrics.record_miss()
            return None

        if entry is None:
            self._metrics.record_miss()
            return None

        try:
            payload = parse_payload(category, json.loads(entry.payload))
        except (json.JSONDecodeError, AIInvocationError) as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            self._metrics.record_miss()
            return None

        if payload.is_empty:
            self._metrics.record_miss()
            return None

        self._metrics.record_hit()
        logger.debug(f"Cache hit for {key}")
        return payload

    def store(self, category: CacheCategory, key: str, payload: EnrichmentPayload) -> bool:
        """Write a payload under a key with the TTL of its category.

        Returns:
            True if stored, False if the store was unavailable
        """
        serialized = json.dumps(payload.non_empty_fields(), ensure_ascii=False, sort_keys=True)
        try:
            self._repository.put(key, serialized, self.ttl_for(category), category.value)
        except CacheStoreError as e:
            logger.warning(f"Cache write failed for {key}, continuing without cache: {e}")
            self._metrics.record_error()
            return False
        return True

    def warm(self, category: CacheCategory, key: str, payload: EnrichmentPayload) -> bool:
        """Store a payload only if the key has no live entry, failing open.

        Existing entries keep their expiry. Does not touch hit/miss metrics.

        Returns:
            True if the payload was written
        """
        try:
            if self._repository.get(key) is not None:
                return False
        except CacheStoreError as e:
            logger.warning(f"Cache probe failed for {key}, skipping warm-up: {e}")
            self._metrics.record_error()
            return False
        return self.store(category, key, payload)

    def discard_entity(self, entity_id: str, name: str) -> int:
        """Drop the cached results of one entity in every category, failing open.

        Returns:
            Number of entries deleted
        """
        deleted = 0
        for category in CacheCategory:
            key = self.key_for(category, entity_id, name)
            try:
                if self._repository.invalidate(key):
                    deleted += 1
            except CacheStoreError as e:
                logger.warning(f"Cache invalidation failed for {key}: {e}")
                self._metrics.record_error()
        return deleted

    def invalidate(self, key: str) -> int:
        """Delete a specific cache entry.

        Returns:
            1 if deleted, 0 otherwise
        """
        return 1 if self._repository.invalidate(key) else 0

    def invalidate_category(self, category: CacheCategory) -> int:
        """Delete every entry of a category.

        Returns:
            Number of entries deleted
        """
        count = self._repository.invalidate_category(category.value)
        logger.info(f"Invalidated {count} cache entries in {category.value}")
        return count

    def clear_expired(self) -> int:
        """Sweep expired entries.

        Returns:
            Number of entries deleted
        """
        count = self._repository.sweep_expired()
        logger.info(f"Swept {count} expired cache entries")
        return count

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Store statistics plus valid_entries, lookup counters and TTLs
        """
        stats = self._repository.stats()
        stats["valid_entries"] = stats["total_entries"] - stats["expired_count"]
        stats.update(self._metrics.to_dict())
        stats["ttl_seconds"] = {category.value: ttl for category, ttl in self._ttls.items()}
        return stats

    def is_healthy(self) -> bool:
        """Check if the cache store is reachable."""
        return self._repository.health_check()

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    @property
    def repository(self) -> CacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository
