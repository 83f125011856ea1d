"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from character_enrichment.dto import CacheDeleteResponse, CacheStatsResponse, HealthCheckResponse
from character_enrichment.models import CacheCategory
from character_enrichment.services import CacheService

from .errors import http_error


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to CacheService
    and handles HTTP-specific concerns like:
    - Converting service results to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = CacheHandler(cache_service=cache_service, ai_model="gpt-4o-mini")

        @app.get("/cache/stats", response_model=CacheStatsResponse)
        async def get_stats():
            return await handler.get_stats()
        ```
    """

    def __init__(self, cache_service: CacheService, ai_model: str | None = None) -> None:
        """Initialize the cache handler.

        Args:
            cache_service: The cache service for business logic (required).
            ai_model: Model name reported by the health check.
        """
        self._cache = cache_service
        self._ai_model = ai_model

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests.

        Raises:
            HTTPException: If an error occurs while fetching stats
        """
        try:
            return CacheStatsResponse(**self._cache.get_stats())
        except Exception as e:
            raise http_error("get stats", e) from e

    async def invalidate(self, key: str | None, category: CacheCategory | None) -> CacheDeleteResponse:
        """Handle DELETE /cache requests (by key or by category).

        Raises:
            HTTPException: 400 unless exactly one of key and category is given
        """
        if (key is None) == (category is None):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Provide exactly one of 'key' or 'category'",
            )
        try:
            if key is not None:
                count = self._cache.invalidate(key)
                target = f"key {key}"
            else:
                count = self._cache.invalidate_category(category)  # type: ignore[arg-type]
                target = f"category {category.value}"  # type: ignore[union-attr]

            return CacheDeleteResponse(
                success=True,
                deleted_count=count,
                message=f"Invalidated {count} entries for {target}",
            )

        except Exception as e:
            raise http_error("invalidate cache", e) from e

    async def sweep_expired(self) -> CacheDeleteResponse:
        """Handle POST /cache/sweep requests."""
        try:
            count = self._cache.clear_expired()

            return CacheDeleteResponse(
                success=True,
                deleted_count=count,
                message="Expired entries removed",
            )

        except Exception as e:
            raise http_error("sweep expired entries", e) from e

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = self._cache.is_healthy()

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=is_healthy,
            ai_model=self._ai_model,
        )
