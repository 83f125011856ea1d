from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from character_enrichment.config import settings
from character_enrichment.dto import (
    BatchJobResponse,
    BatchRequest,
    CacheDeleteResponse,
    CacheStatsResponse,
    EnrichmentRecordResponse,
    EnrichRequest,
    HealthCheckResponse,
    ManualEnrichmentRequest,
    ResetStatusRequest,
    ResetStatusResponse,
    StatusReportResponse,
)
from character_enrichment.models import CacheCategory
from character_enrichment.protocols import AIInvoker, CacheStore, PersistenceGateway

from .dependencies import CacheHandlerDep, EnrichmentHandlerDep, build_lifespan

router = APIRouter()


@router.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Character Enrichment API",
        "version": "0.1.0",
        "description": "AI enrichment of anime characters with result caching and batch orchestration",
        "endpoints": {
            "enrichment": "/enrichment",
            "batches": "/batches",
            "cache": "/cache",
            "health": "/health",
            "docs": "/docs",
        },
    }


@router.get("/health", response_model=HealthCheckResponse)
async def health(handler: CacheHandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@router.post("/enrichment/reset", response_model=ResetStatusResponse)
async def reset_status(request: ResetStatusRequest, handler: EnrichmentHandlerDep) -> ResetStatusResponse:
    """Reset attempts and errors of the given entities to pending or failed."""
    return await handler.reset_status(request)


@router.get("/enrichment/status", response_model=StatusReportResponse)
async def status_report(
    handler: EnrichmentHandlerDep,
    parent_id: str | None = None,
    include_details: bool = False,
) -> StatusReportResponse:
    """Counts per status and completion percentage."""
    return await handler.status_report(parent_id, include_details)


@router.post("/enrichment/{entity_id}", response_model=EnrichmentRecordResponse)
async def enrich_entity(
    entity_id: str,
    handler: EnrichmentHandlerDep,
    request: EnrichRequest | None = None,
) -> EnrichmentRecordResponse:
    """
    Enrich one entity.

    Args:
        entity_id: Catalog identifier.
        request: Optional force / keep_protection / category.

    Returns:
        The resulting enrichment record.
    """
    return await handler.enrich_one(entity_id, request or EnrichRequest())


@router.put("/enrichment/{entity_id}/manual", response_model=EnrichmentRecordResponse)
async def apply_manual_enrichment(
    entity_id: str,
    request: ManualEnrichmentRequest,
    handler: EnrichmentHandlerDep,
) -> EnrichmentRecordResponse:
    """Store curator-supplied fields and protect the record."""
    return await handler.apply_manual(entity_id, request)


@router.post("/batches", response_model=BatchJobResponse)
async def run_batch(request: BatchRequest, handler: EnrichmentHandlerDep) -> BatchJobResponse:
    """Run a batch to completion and return its summary."""
    return await handler.run_batch(request)


@router.post("/batches/start", response_model=BatchJobResponse, status_code=202)
async def start_batch(request: BatchRequest, handler: EnrichmentHandlerDep) -> BatchJobResponse:
    """Start a batch in the background; poll GET /batches/{job_id}."""
    return await handler.start_batch(request)


@router.get("/batches/{job_id}", response_model=BatchJobResponse)
async def get_batch(job_id: str, handler: EnrichmentHandlerDep) -> BatchJobResponse:
    """Progress or final summary of a background batch."""
    return await handler.get_batch(job_id)


@router.post("/batches/{job_id}/cancel", response_model=BatchJobResponse)
async def cancel_batch(job_id: str, handler: EnrichmentHandlerDep) -> BatchJobResponse:
    """Request cooperative cancellation of a background batch."""
    return await handler.cancel_batch(job_id)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(handler: CacheHandlerDep) -> CacheStatsResponse:
    """Get cache statistics."""
    return await handler.get_stats()


@router.delete("/cache", response_model=CacheDeleteResponse)
async def invalidate_cache(
    handler: CacheHandlerDep,
    key: str | None = None,
    category: CacheCategory | None = None,
) -> CacheDeleteResponse:
    """Invalidate one cache key or a whole category."""
    return await handler.invalidate(key, category)


@router.post("/cache/sweep", response_model=CacheDeleteResponse)
async def sweep_cache(handler: CacheHandlerDep) -> CacheDeleteResponse:
    """Remove expired cache entries."""
    return await handler.sweep_expired()


def create_app(
    catalog: PersistenceGateway | None = None,
    invoker: AIInvoker | None = None,
    cache_store: CacheStore | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        catalog: Catalog gateway. Defaults to the in-memory catalog.
        invoker: AI invoker. Defaults to OpenAIInvoker.
        cache_store: Cache backend. Defaults to CACHE_BACKEND.
    """
    application = FastAPI(
        title="Character Enrichment API",
        description="AI enrichment of anime characters with result caching and batch orchestration",
        version="0.1.0",
        lifespan=build_lifespan(catalog=catalog, invoker=invoker, cache_store=cache_store),
    )

    application.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "character_enrichment.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
