"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from character_enrichment.config import configure_logging, settings
from character_enrichment.handlers import CacheHandler, EnrichmentHandler
from character_enrichment.protocols import AIInvoker, CacheStore, PersistenceGateway
from character_enrichment.repositories import (
    InMemoryCacheRepository,
    InMemoryCatalogRepository,
    OpenAIInvoker,
    RedisCacheRepository,
)
from character_enrichment.services import BatchOrchestrator, CacheService, EnrichmentService

logger = logging.getLogger(__name__)


def get_enrichment_handler(request: Request) -> EnrichmentHandler:
    """Dependency injection for EnrichmentHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "enrichment_handler", None)
    if handler is None:
        raise RuntimeError("EnrichmentHandler not initialized. Check lifespan setup.")
    return handler


def get_cache_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


def default_cache_store() -> CacheStore:
    """Cache backend selected by CACHE_BACKEND."""
    if settings.uses_redis:
        return RedisCacheRepository.create()
    return InMemoryCacheRepository.create()


def default_catalog() -> PersistenceGateway:
    """In-memory catalog, seeded from CATALOG_SEED_PATH when set."""
    if settings.catalog_seed_path:
        return InMemoryCatalogRepository.from_json(settings.catalog_seed_path)
    return InMemoryCatalogRepository()


def build_lifespan(
    catalog: PersistenceGateway | None = None,
    invoker: AIInvoker | None = None,
    cache_store: CacheStore | None = None,
):
    """Create the lifespan context manager for the FastAPI app.

    Collaborators left as None are built from settings. Tests pass fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize all layers and store them in app.state.

        1. Repositories (data access)
        2. Services (business logic)
        3. Handlers (HTTP endpoints)
        """
        configure_logging()

        store = cache_store or default_cache_store()
        gateway = catalog or default_catalog()
        ai = invoker or OpenAIInvoker.create()

        cache_service = CacheService.create(repository=store)
        enrichment_service = EnrichmentService.create(
            persistence=gateway,
            invoker=ai,
            cache_service=cache_service,
        )
        orchestrator = BatchOrchestrator.create(enrichment_service)

        # Store in app.state (FastAPI pattern)
        app.state.cache_service = cache_service
        app.state.enrichment_service = enrichment_service
        app.state.orchestrator = orchestrator
        app.state.cache_handler = CacheHandler(cache_service=cache_service, ai_model=ai.model_name)
        app.state.enrichment_handler = EnrichmentHandler(
            enrichment_service=enrichment_service,
            orchestrator=orchestrator,
        )

        logger.info(f"Enrichment service initialized (cache backend: {type(store).__name__}, model: {ai.model_name})")
        logger.info(f"Cache healthy: {cache_service.is_healthy()}")

        yield

        # Cleanup - remove from app.state
        del app.state.enrichment_handler
        del app.state.cache_handler
        del app.state.orchestrator
        del app.state.enrichment_service
        del app.state.cache_service
        if isinstance(ai, OpenAIInvoker):
            await ai.close()
        logger.info("Enrichment service shut down")

    return lifespan


# Type aliases for cleaner dependency injection
EnrichmentHandlerDep = Annotated[EnrichmentHandler, Depends(get_enrichment_handler)]
CacheHandlerDep = Annotated[CacheHandler, Depends(get_cache_handler)]
