"""Enrichment record domain entity and its state transitions."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class EnrichmentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EnrichmentRecord:
    """Enrichment state of one catalog entity.

    Records are immutable; every transition returns a new record so that a
    caller holding an older snapshot never observes a half-applied update.

    Attributes:
        entity_id: Reference to the owning record in the catalog
        status: Lifecycle state
        attempts: Number of enrichment attempts, incremented on entry into pending
        last_attempt_at: Unix timestamp of the last attempt
        last_success_at: Unix timestamp of the last successful enrichment
        last_error: Last failure description, cleared on success
        error_kind: Classification of the last failure
        protected: True once a curator supplied or approved the enrichment
        protected_by: Curator identifier
        protected_at: Unix timestamp when protection was set
        fields: Top-level enrichment fields (personality_analysis, trivia, ...)
    """

    entity_id: str
    status: EnrichmentStatus = EnrichmentStatus.PENDING
    attempts: int = 0
    last_attempt_at: float | None = None
    last_success_at: float | None = None
    last_error: str | None = None
    error_kind: str | None = None
    protected: bool = False
    protected_by: str | None = None
    protected_at: float | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def begin_attempt(self, now: float) -> "EnrichmentRecord":
        """Enter pending: one more attempt."""
        return replace(
            self,
            status=EnrichmentStatus.PENDING,
            attempts=self.attempts + 1,
            last_attempt_at=now,
        )

    def succeed(self, new_fields: dict[str, Any], now: float) -> "EnrichmentRecord":
        """pending -> success. Each supplied top-level field replaces the old one."""
        merged = dict(self.fields)
        merged.update(new_fields)
        return replace(
            self,
            status=EnrichmentStatus.SUCCESS,
            fields=merged,
            last_success_at=now,
            last_error=None,
            error_kind=None,
        )

    def fail(self, error: str, kind: str | None = None) -> "EnrichmentRecord":
        """pending -> failed."""
        return replace(self, status=EnrichmentStatus.FAILED, last_error=error, error_kind=kind)

    def skip(self, reason: str) -> "EnrichmentRecord":
        """pending -> skipped."""
        return replace(self, status=EnrichmentStatus.SKIPPED, last_error=reason, error_kind=None)

    def protect(self, curator_id: str, now: float) -> "EnrichmentRecord":
        return replace(self, protected=True, protected_by=curator_id, protected_at=now)

    def unprotect(self) -> "EnrichmentRecord":
        return replace(self, protected=False, protected_by=None, protected_at=None)

    def reset(self, status: EnrichmentStatus) -> "EnrichmentRecord":
        """Administrative reset. Content and protection are kept."""
        return replace(
            self,
            status=status,
            attempts=0,
            last_attempt_at=None,
            last_error=None,
            error_kind=None,
        )
