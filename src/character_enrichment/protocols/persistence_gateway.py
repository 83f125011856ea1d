"""Persistence gateway protocol.

Narrow interface to the catalog store that owns the entities. The core
only reads prompting context and replaces enrichment state.
"""

from typing import Protocol, runtime_checkable

from character_enrichment.entities import EnrichmentRecord, EntityContext


@runtime_checkable
class PersistenceGateway(Protocol):
    """Protocol for the catalog store.

    Implementations raise EntityNotFoundError for unknown ids and
    PersistenceError for any other failure.
    """

    async def load_entity(self, entity_id: str) -> EntityContext:
        """Load prompting fields and the current enrichment record.

        A record with status pending and zero attempts is returned for
        entities never enriched before.
        """
        ...

    async def save_enrichment(self, entity_id: str, record: EnrichmentRecord) -> None:
        """Atomically replace the enrichment fields of an entity.

        Must not alter catalog-owned fields of the entity.
        """
        ...

    async def list_entity_ids(self, parent_id: str | None = None) -> list[str]:
        """List entity ids, optionally restricted to one parent."""
        ...
