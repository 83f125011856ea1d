"""Domain entities for internal representation.

These are pure dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for that.

Entities should have:
- No JSON serialization logic
- No Pydantic validation
- No external dependencies
- Pure domain logic only
"""

from .batch_job import BatchJob, BatchProgress, UnitOutcome
from .cache_entry import CacheEntryEntity
from .enrichment_record import EnrichmentRecord, EnrichmentStatus
from .entity_context import EntityContext

__all__ = [
    "BatchJob",
    "BatchProgress",
    "CacheEntryEntity",
    "EnrichmentRecord",
    "EnrichmentStatus",
    "EntityContext",
    "UnitOutcome",
]
