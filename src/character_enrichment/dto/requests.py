"""Request DTOs for API endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from character_enrichment.models import CacheCategory


class EnrichRequest(BaseModel):
    """Request DTO for enriching a single entity.

    The handler will convert this to internal calls to the service layer.
    """

    force: bool = Field(False, description="Bypass the cache and re-run an already enriched entity")
    keep_protection: bool | None = Field(
        None,
        description="Required with force on a protected entity: keep (true) or clear (false) protection",
    )
    category: CacheCategory = Field(
        CacheCategory.CHARACTER_ENRICHMENT,
        description="Which analysis to produce",
    )


class ManualEnrichmentRequest(BaseModel):
    """Request DTO for curator-supplied enrichment."""

    curator_id: str = Field(..., description="Identifier of the curator", min_length=1)
    fields: dict[str, Any] = Field(..., description="Enrichment fields to store")
    category: CacheCategory = Field(
        CacheCategory.CHARACTER_ENRICHMENT,
        description="Schema the fields are validated against",
    )


class ResetStatusRequest(BaseModel):
    """Request DTO for resetting enrichment state."""

    entity_ids: list[str] = Field(..., description="Entities to reset", min_length=1)
    reset_to: Literal["pending", "failed"] = Field("pending", description="Target status")


class BatchRequest(BaseModel):
    """Request DTO for running a batch.

    Either an explicit worklist or a selection (parent_id / include_retries)
    over the catalog.
    """

    worklist: list[str] | None = Field(
        None,
        description="Entity ids to enrich (if null, eligible entities are selected from the catalog)",
    )
    parent_id: str | None = Field(None, description="Restrict selection to one parent (e.g. an anime)")
    include_retries: bool = Field(False, description="Select failed entities whose retry cooldown has elapsed")
    limit: int | None = Field(None, description="Maximum number of selected entities", ge=1)
    concurrency_limit: int | None = Field(None, description="Maximum concurrent units")
    force: bool = Field(False, description="Bypass the cache for every unit")
    keep_protection: bool | None = Field(
        None,
        description=(
            "Protection decision, required whenever force is set, even if no unit is protected: "
            "the batch is validated before any record is loaded"
        ),
    )
    category: CacheCategory = Field(CacheCategory.CHARACTER_ENRICHMENT, description="Which analysis to produce")

    @model_validator(mode="after")
    def _worklist_or_selection(self) -> "BatchRequest":
        if self.worklist is not None and (self.parent_id or self.include_retries or self.limit):
            raise ValueError("worklist cannot be combined with parent_id, include_retries or limit")
        return self
