"""Entity context domain entity."""

from dataclasses import dataclass, field
from typing import Any

from .enrichment_record import EnrichmentRecord


@dataclass(frozen=True)
class EntityContext:
    """What the catalog provides about an entity for prompting.

    Attributes:
        entity_id: Catalog identifier
        name: Display name (e.g. the character name)
        parent_id: Owning record (e.g. the anime), if any
        parent_title: Title of the owning record
        attributes: Existing catalog data used as prompt context (role, description, ...)
        record: Current enrichment state
    """

    entity_id: str
    name: str
    record: EnrichmentRecord
    parent_id: str | None = None
    parent_title: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
