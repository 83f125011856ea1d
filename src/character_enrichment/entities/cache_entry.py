"""Cache entry domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for one cached AI computation.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Attributes:
        key: Composite key (category plus ordered parameter values)
        payload: Serialized structured result (JSON text)
        category: Category tag used for statistics and selective invalidation
        created_at: Unix timestamp of the write
        expires_at: created_at + ttl
    """

    key: str
    payload: str
    category: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Expiration predicate shared by lookups, stats and sweeps."""
        return now >= self.expires_at

    @property
    def approximate_size(self) -> int:
        """Approximate size in bytes of key and payload."""
        return len(self.key.encode()) + len(self.payload.encode())
