"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (memory → Redis, OpenAI → local model, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from character_enrichment.protocols import AIInvoker, CacheStore, PersistenceGateway

    store: CacheStore = InMemoryCacheRepository()
    store: CacheStore = RedisCacheRepository.create()
    ```
"""

from .ai_invoker import AIInvoker
from .cache_store import CacheStore
from .persistence_gateway import PersistenceGateway

__all__ = [
    "AIInvoker",
    "CacheStore",
    "PersistenceGateway",
]
