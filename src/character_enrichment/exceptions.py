"""Exceptions for the enrichment core."""

from enum import Enum


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""


class InvalidRequestError(EnrichmentError):
    """Raised when a request is rejected before any work starts."""


class CacheStoreError(EnrichmentError):
    """Raised when the cache backend is unavailable or an operation fails."""


class PersistenceError(EnrichmentError):
    """Raised when the catalog store fails to load or save a record."""


class EntityNotFoundError(PersistenceError):
    """Raised when an entity does not exist in the catalog."""

    def __init__(self, entity_id: str):
        super().__init__(f"Entity not found: {entity_id}")
        self.entity_id = entity_id


class ProtectionViolationError(EnrichmentError):
    """Raised when a forced enrichment targets a protected record without an explicit decision."""

    def __init__(self, entity_id: str | None = None):
        if entity_id:
            super().__init__(
                f"Entity {entity_id} is protected: force requires an explicit keep_protection decision"
            )
        else:
            super().__init__("force requires an explicit keep_protection decision")
        self.entity_id = entity_id


class OperationCancelledError(EnrichmentError):
    """Raised when a batch is cancelled while a unit waits between retries."""


class ErrorKind(str, Enum):
    """Classification of AI invocation failures."""

    TRANSIENT_NETWORK = "transient_network"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    CONTENT_POLICY_REJECTED = "content_policy_rejected"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.TRANSIENT_NETWORK, ErrorKind.RATE_LIMITED)


class AIInvocationError(EnrichmentError):
    """Raised by an AI invoker with a failure classification."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def describe(self) -> str:
        """Error description stored on the enrichment record."""
        return f"{self.kind.value}: {self.message}"
