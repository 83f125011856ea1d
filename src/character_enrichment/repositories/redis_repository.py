"""Redis implementation of CacheStore.

Each entry is a Redis hash; every category keeps a set of its member keys so
that category invalidation, statistics and sweeps never pattern-match keys.
"""

import time
from collections.abc import Callable

import redis
from redis.exceptions import RedisError

from character_enrichment.config import get_redis_client, settings
from character_enrichment.entities import CacheEntryEntity
from character_enrichment.exceptions import CacheStoreError


class RedisCacheRepository:
    """Redis implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Layout:
    - {prefix}:entry:{key}        hash with payload, category, created_at, expires_at
    - {prefix}:category:{name}    set of cache keys in the category
    - {prefix}:categories         set of known category names

    Lookups apply the expiration predicate with the injected clock. Redis
    native expiry is set to the same instant, so entries also disappear on
    their own; sweep_expired() then only prunes stale index members.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance (decode_responses=True). If None, creates default.
            key_prefix: Namespace for all keys written by this repository.
            clock: Returns the current Unix time. Defaults to time.time.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._clock = clock or time.time

    @classmethod
    def create(
        cls,
        key_prefix: str | None = None,
        clock: Callable[[], float] | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            key_prefix: Key namespace. If None, uses settings.
            clock: Time source. If None, uses time.time.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(key_prefix=key_prefix, clock=clock)

    def _entry_key(self, key: str) -> str:
        return f"{self._prefix}:entry:{key}"

    def _category_key(self, category: str) -> str:
        return f"{self._prefix}:category:{category}"

    @property
    def _categories_key(self) -> str:
        return f"{self._prefix}:categories"

    @staticmethod
    def _to_entity(key: str, data: dict) -> CacheEntryEntity | None:
        if not data or "payload" not in data:
            return None
        return CacheEntryEntity(
            key=key,
            payload=data["payload"],
            category=data.get("category", ""),
            created_at=float(data.get("created_at", 0)),
            expires_at=float(data.get("expires_at", 0)),
        )

    def get(self, key: str) -> CacheEntryEntity | None:
        try:
            data = self._client.hgetall(self._entry_key(key))
        except RedisError as e:
            raise CacheStoreError(f"Redis read failed for {key}: {e}") from e

        entry = self._to_entity(key, data)  # type: ignore[arg-type]
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
        entry_key = self._entry_key(key)

        try:
            pipe = self._client.pipeline()
            pipe.delete(entry_key)
            pipe.hset(
                entry_key,
                mapping={
                    "payload": payload,
                    "category": category,
                    "created_at": str(entry.created_at),
                    "expires_at": str(entry.expires_at),
                },
            )
            pipe.pexpireat(entry_key, int(entry.expires_at * 1000))
            pipe.sadd(self._category_key(category), key)
            pipe.sadd(self._categories_key, category)
            pipe.execute()
        except RedisError as e:
            raise CacheStoreError(f"Redis write failed for {key}: {e}") from e

        return entry

    def invalidate(self, key: str) -> bool:
        try:
            category = self._client.hget(self._entry_key(key), "category")
            result: int = self._client.delete(self._entry_key(key))  # type: ignore[assignment]
            if category:
                self._client.srem(self._category_key(category), key)  # type: ignore[arg-type]
        except RedisError as e:
            raise CacheStoreError(f"Redis delete failed for {key}: {e}") from e
        return result > 0

    def invalidate_category(self, category: str) -> int:
        try:
            members = self._client.smembers(self._category_key(category))
            count = 0
            for key in members:  # type: ignore[union-attr]
                if self._client.delete(self._entry_key(key)):
                    count += 1
            self._client.delete(self._category_key(category))
        except RedisError as e:
            raise CacheStoreError(f"Redis category delete failed for {category}: {e}") from e
        return count

    def _iter_entries(self):
        """Yield (category, key, entry-or-None) for every indexed key."""
        for category in self._client.smembers(self._categories_key):  # type: ignore[union-attr]
            for key in self._client.smembers(self._category_key(category)):  # type: ignore[union-attr]
                data = self._client.hgetall(self._entry_key(key))
                yield category, key, self._to_entity(key, data)  # type: ignore[arg-type]

    def sweep_expired(self) -> int:
        now = self._clock()
        count = 0
        try:
            for category, key, entry in list(self._iter_entries()):
                if entry is None:
                    # Already expired natively; drop the index member
                    self._client.srem(self._category_key(category), key)
                    count += 1
                elif entry.is_expired(now):
                    self._client.delete(self._entry_key(key))
                    self._client.srem(self._category_key(category), key)
                    count += 1
        except RedisError as e:
            raise CacheStoreError(f"Redis sweep failed: {e}") from e
        return count

    def stats(self) -> dict:
        now = self._clock()
        per_category: dict[str, int] = {}
        expired = 0
        size = 0
        try:
            for category, _key, entry in self._iter_entries():
                if entry is None:
                    continue
                per_category[category] = per_category.get(category, 0) + 1
                size += entry.approximate_size
                if entry.is_expired(now):
                    expired += 1
        except RedisError as e:
            raise CacheStoreError(f"Redis stats failed: {e}") from e

        return {
            "total_entries": sum(per_category.values()),
            "per_category_counts": per_category,
            "expired_count": expired,
            "approximate_byte_size": size,
        }

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            result = self._client.ping()
            return bool(result)
        except RedisError:
            return False

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
