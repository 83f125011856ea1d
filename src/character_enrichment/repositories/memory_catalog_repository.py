"""In-memory catalog store implementing PersistenceGateway.

Stands in for the external catalog in tests, the demo and the default API
wiring. Stored objects are deep-copied on the way in and out so callers
never share mutable state with the store.
"""

import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from character_enrichment.entities import EnrichmentRecord, EntityContext
from character_enrichment.exceptions import EntityNotFoundError, PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class _CatalogEntry:
    name: str
    parent_id: str | None
    parent_title: str | None
    attributes: dict[str, Any] = field(default_factory=dict)
    record: EnrichmentRecord | None = None


class InMemoryCatalogRepository:
    """Dictionary-backed implementation of the PersistenceGateway protocol.

    Example:
        ```python
        catalog = InMemoryCatalogRepository()
        catalog.add_entity("c1", "Spike Spiegel", parent_id="a1", parent_title="Cowboy Bebop")
        context = await catalog.load_entity("c1")
        ```
    """

    def __init__(self) -> None:
        self._entities: dict[str, _CatalogEntry] = {}
        self._lock = asyncio.Lock()
        self.save_count = 0
        # Entity ids whose next saves raise PersistenceError
        self.failing_saves: set[str] = set()

    def add_entity(
        self,
        entity_id: str,
        name: str,
        parent_id: str | None = None,
        parent_title: str | None = None,
        attributes: dict[str, Any] | None = None,
        record: EnrichmentRecord | None = None,
    ) -> None:
        """Register a catalog entity (catalog-owned fields plus optional enrichment state)."""
        self._entities[entity_id] = _CatalogEntry(
            name=name,
            parent_id=parent_id,
            parent_title=parent_title,
            attributes=copy.deepcopy(attributes or {}),
            record=copy.deepcopy(record),
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryCatalogRepository":
        """Create a catalog seeded from a JSON file.

        The file holds a list of objects with entity_id, name and optional
        parent_id, parent_title and attributes.
        """
        catalog = cls()
        with open(path, encoding="utf-8") as f:
            items = json.load(f)
        for item in items:
            catalog.add_entity(
                str(item["entity_id"]),
                item["name"],
                parent_id=item.get("parent_id"),
                parent_title=item.get("parent_title"),
                attributes=item.get("attributes"),
            )
        logger.info(f"Seeded catalog with {len(items)} entities from {path}")
        return catalog

    def get_record(self, entity_id: str) -> EnrichmentRecord | None:
        """Return the stored enrichment record without going through the async gateway."""
        entry = self._entities.get(entity_id)
        return copy.deepcopy(entry.record) if entry else None

    async def load_entity(self, entity_id: str) -> EntityContext:
        async with self._lock:
            entry = self._entities.get(entity_id)
            if entry is None:
                raise EntityNotFoundError(entity_id)
            record = entry.record or EnrichmentRecord(entity_id=entity_id)
            return EntityContext(
                entity_id=entity_id,
                name=entry.name,
                record=copy.deepcopy(record),
                parent_id=entry.parent_id,
                parent_title=entry.parent_title,
                attributes=copy.deepcopy(entry.attributes),
            )

    async def save_enrichment(self, entity_id: str, record: EnrichmentRecord) -> None:
        async with self._lock:
            entry = self._entities.get(entity_id)
            if entry is None:
                raise EntityNotFoundError(entity_id)
            if entity_id in self.failing_saves:
                raise PersistenceError(f"Catalog write failed for {entity_id}")
            entry.record = copy.deepcopy(record)
            self.save_count += 1

    async def list_entity_ids(self, parent_id: str | None = None) -> list[str]:
        async with self._lock:
            return [
                entity_id
                for entity_id, entry in self._entities.items()
                if parent_id is None or entry.parent_id == parent_id
            ]
