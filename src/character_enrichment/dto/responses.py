"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class EnrichmentRecordResponse(BaseModel):
    """Response DTO for the enrichment state of one entity."""

    entity_id: str = Field(..., description="Catalog identifier")
    status: str = Field(..., description="pending, success, failed or skipped")
    attempts: int = Field(..., description="Number of enrichment attempts", ge=0)
    last_attempt_at: float | None = Field(None, description="Unix timestamp of the last attempt")
    last_success_at: float | None = Field(None, description="Unix timestamp of the last success")
    last_error: str | None = Field(None, description="Last failure or skip reason")
    error_kind: str | None = Field(None, description="Classification of the last failure")
    protected: bool = Field(..., description="Whether the record is protected from automated changes")
    protected_by: str | None = Field(None, description="Curator who protected the record")
    protected_at: float | None = Field(None, description="Unix timestamp of protection")
    fields: dict[str, Any] = Field(default_factory=dict, description="Enrichment content")


class ResetStatusResponse(BaseModel):
    """Response DTO for a status reset."""

    reset_count: int = Field(..., description="Number of records reset", ge=0)
    entity_ids: list[str] = Field(default_factory=list, description="Ids of the reset records")


class StatusReportResponse(BaseModel):
    """Response DTO for the enrichment status report."""

    total: int = Field(..., description="Number of entities considered", ge=0)
    counts: dict[str, int] = Field(..., description="Entities per status")
    protected: int = Field(..., description="Protected entities", ge=0)
    percentage_complete: float = Field(..., description="Share of successful entities, in percent")
    details: list[dict[str, Any]] | None = Field(None, description="Per-entity state, when requested")


class UnitOutcomeItem(BaseModel):
    """Outcome of one worklist unit."""

    entity_id: str
    status: str
    error: str | None = None
    error_kind: str | None = None
    adapter_calls: int = 0
    from_cache: bool = False


class BatchJobResponse(BaseModel):
    """Response DTO for a batch job, running or terminal."""

    job_id: str = Field(..., description="Batch identifier")
    state: str = Field(..., description="running, cancelling, cancelled or completed")
    progress: dict[str, int] = Field(..., description="Counters per bucket")
    concurrency_limit: int | None = Field(None, description="Worker count")
    started_at: float | None = Field(None, description="Unix timestamp of the start")
    finished_at: float | None = Field(None, description="Unix timestamp of termination")
    outcomes: list[UnitOutcomeItem] = Field(default_factory=list, description="Per-unit outcomes")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    total_entries: int = Field(..., description="Total number of cached entries", ge=0)
    valid_entries: int = Field(..., description="Entries not yet expired", ge=0)
    expired_count: int = Field(..., description="Expired entries awaiting a sweep", ge=0)
    per_category_counts: dict[str, int] = Field(default_factory=dict, description="Entries per category")
    approximate_byte_size: int = Field(..., description="Approximate size of keys and payloads", ge=0)
    lookups: int = Field(0, description="Lookups since startup", ge=0)
    hits: int = Field(0, description="Cache hits since startup", ge=0)
    misses: int = Field(0, description="Cache misses since startup", ge=0)
    errors: int = Field(0, description="Store errors absorbed since startup", ge=0)
    hit_rate: float = Field(0.0, description="hits / lookups", ge=0.0, le=1.0)
    ttl_seconds: dict[str, int] = Field(default_factory=dict, description="TTL per category")


class CacheDeleteResponse(BaseModel):
    """Response DTO for invalidation and sweeps."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Number of entries deleted", ge=0)
    message: str = Field(..., description="Human-readable status message")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    ai_model: str | None = Field(None, description="Configured AI model")
