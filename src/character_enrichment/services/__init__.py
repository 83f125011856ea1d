"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from character_enrichment.services import BatchOrchestrator, CacheService, EnrichmentService

    cache = CacheService.create(repository=InMemoryCacheRepository())
    service = EnrichmentService.create(persistence=catalog, invoker=invoker, cache_service=cache)
    job = await BatchOrchestrator.create(service).run(["c1", "c2"])
    ```
"""

from .batch_orchestrator import BatchHandle, BatchOrchestrator
from .cache_service import CacheService, build_cache_key, normalize_name
from .enrichment_service import EnrichmentService
from .retry_policy import RetryPolicy

__all__ = [
    "BatchHandle",
    "BatchOrchestrator",
    "CacheService",
    "EnrichmentService",
    "RetryPolicy",
    "build_cache_key",
    "normalize_name",
]
