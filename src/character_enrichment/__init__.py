"""Character Enrichment - AI enrichment of anime characters with caching.

This package provides a layered architecture for enriching catalog entities
with AI-generated analysis while avoiding redundant model calls:

Layers:
    - protocols: Interface contracts (CacheStore, AIInvoker, PersistenceGateway)
    - repositories: Data access implementations
    - services: Business logic (cache, enrichment state machine, batches)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from character_enrichment import (
        BatchOrchestrator,
        CacheService,
        EnrichmentService,
        InMemoryCacheRepository,
        InMemoryCatalogRepository,
        OpenAIInvoker,
    )

    cache = CacheService.create(repository=InMemoryCacheRepository.create())
    service = EnrichmentService.create(
        persistence=InMemoryCatalogRepository(),
        invoker=OpenAIInvoker.create(),
        cache_service=cache,
    )
    job = await BatchOrchestrator.create(service).run(["c1", "c2"])
    ```

For HTTP API:
    ```python
    from character_enrichment.api.app import app
    ```
"""

from character_enrichment.config import get_redis_client, settings
from character_enrichment.entities import (
    BatchJob,
    BatchProgress,
    CacheEntryEntity,
    EnrichmentRecord,
    EnrichmentStatus,
    EntityContext,
    UnitOutcome,
)
from character_enrichment.exceptions import (
    AIInvocationError,
    CacheStoreError,
    EnrichmentError,
    EntityNotFoundError,
    ErrorKind,
    InvalidRequestError,
    PersistenceError,
    ProtectionViolationError,
)
from character_enrichment.models import CacheCategory, CharacterEnrichment
from character_enrichment.protocols import AIInvoker, CacheStore, PersistenceGateway
from character_enrichment.repositories import (
    InMemoryCacheRepository,
    InMemoryCatalogRepository,
    OpenAIInvoker,
    RedisCacheRepository,
)
from character_enrichment.services import (
    BatchHandle,
    BatchOrchestrator,
    CacheService,
    EnrichmentService,
    RetryPolicy,
)

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "AIInvoker",
    "CacheStore",
    "PersistenceGateway",
    # Services (business logic)
    "BatchHandle",
    "BatchOrchestrator",
    "CacheService",
    "EnrichmentService",
    "RetryPolicy",
    # Repositories (data access)
    "InMemoryCacheRepository",
    "InMemoryCatalogRepository",
    "OpenAIInvoker",
    "RedisCacheRepository",
    # Entities (domain models)
    "BatchJob",
    "BatchProgress",
    "CacheEntryEntity",
    "EnrichmentRecord",
    "EnrichmentStatus",
    "EntityContext",
    "UnitOutcome",
    # Models and errors
    "CacheCategory",
    "CharacterEnrichment",
    "AIInvocationError",
    "CacheStoreError",
    "EnrichmentError",
    "EntityNotFoundError",
    "ErrorKind",
    "InvalidRequestError",
    "PersistenceError",
    "ProtectionViolationError",
]
