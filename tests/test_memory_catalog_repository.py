"""
Tests for the in-memory catalog.
"""

import json

import pytest

from character_enrichment.entities import EnrichmentRecord, EnrichmentStatus
from character_enrichment.exceptions import EntityNotFoundError, PersistenceError
from character_enrichment.protocols import PersistenceGateway
from character_enrichment.repositories import InMemoryCatalogRepository


def test_satisfies_protocol():
    assert isinstance(InMemoryCatalogRepository(), PersistenceGateway)


@pytest.mark.asyncio
async def test_load_defaults_to_pending_record(catalog):
    context = await catalog.load_entity("spike")

    assert context.name == "Spike Spiegel"
    assert context.parent_id == "bebop"
    assert context.record.status == EnrichmentStatus.PENDING
    assert context.record.attempts == 0


@pytest.mark.asyncio
async def test_unknown_entity(catalog):
    with pytest.raises(EntityNotFoundError):
        await catalog.load_entity("nobody")
    with pytest.raises(EntityNotFoundError):
        await catalog.save_enrichment("nobody", EnrichmentRecord(entity_id="nobody"))


@pytest.mark.asyncio
async def test_save_replaces_record(catalog):
    record = EnrichmentRecord(entity_id="jet").begin_attempt(10.0).fail("bad", "malformed_response")

    await catalog.save_enrichment("jet", record)

    assert catalog.get_record("jet") == record
    assert catalog.save_count == 1
    assert (await catalog.load_entity("jet")).record == record


@pytest.mark.asyncio
async def test_failing_saves_leave_record_unchanged(catalog):
    catalog.failing_saves.add("jet")

    with pytest.raises(PersistenceError):
        await catalog.save_enrichment("jet", EnrichmentRecord(entity_id="jet").skip("x"))

    assert catalog.get_record("jet") is None
    assert catalog.save_count == 0


@pytest.mark.asyncio
async def test_loaded_context_is_a_copy(catalog):
    catalog.add_entity("ein", "Ein", attributes={"species": ["corgi"]})

    context = await catalog.load_entity("ein")
    context.attributes["species"].append("genius")

    assert (await catalog.load_entity("ein")).attributes == {"species": ["corgi"]}


@pytest.mark.asyncio
async def test_list_entity_ids_by_parent(catalog):
    assert await catalog.list_entity_ids("deathnote") == ["light", "l"]
    assert len(await catalog.list_entity_ids()) == 5


@pytest.mark.asyncio
async def test_from_json(tmp_path):
    seed = tmp_path / "catalog.json"
    seed.write_text(
        json.dumps([
            {"entity_id": 1, "name": "Edward", "parent_id": "bebop", "attributes": {"role": "Main"}},
            {"entity_id": "ein", "name": "Ein"},
        ])
    )

    catalog = InMemoryCatalogRepository.from_json(seed)

    assert await catalog.list_entity_ids() == ["1", "ein"]
    context = await catalog.load_entity("1")
    assert context.attributes == {"role": "Main"}
    assert context.parent_title is None
