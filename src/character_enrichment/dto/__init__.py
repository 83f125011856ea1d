"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import BatchRequest, EnrichRequest, ManualEnrichmentRequest, ResetStatusRequest
from .responses import (
    BatchJobResponse,
    CacheDeleteResponse,
    CacheStatsResponse,
    EnrichmentRecordResponse,
    HealthCheckResponse,
    ResetStatusResponse,
    StatusReportResponse,
    UnitOutcomeItem,
)

__all__ = [
    "BatchRequest",
    "EnrichRequest",
    "ManualEnrichmentRequest",
    "ResetStatusRequest",
    "BatchJobResponse",
    "CacheDeleteResponse",
    "CacheStatsResponse",
    "EnrichmentRecordResponse",
    "HealthCheckResponse",
    "ResetStatusResponse",
    "StatusReportResponse",
    "UnitOutcomeItem",
]
