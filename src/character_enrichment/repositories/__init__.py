"""Repository layer for data access.

This layer abstracts external dependencies (Redis, the catalog store, the AI
model API) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (memory → Redis, OpenAI → local gateway)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from character_enrichment.protocols import AIInvoker, CacheStore, PersistenceGateway

from .memory_cache_repository import InMemoryCacheRepository
from .memory_catalog_repository import InMemoryCatalogRepository
from .openai_invoker import OpenAIInvoker
from .redis_repository import RedisCacheRepository

__all__ = [
    "AIInvoker",
    "CacheStore",
    "PersistenceGateway",
    "InMemoryCacheRepository",
    "InMemoryCatalogRepository",
    "OpenAIInvoker",
    "RedisCacheRepository",
]
