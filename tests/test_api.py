"""
Tests for the character enrichment API.
"""

import time

import pytest
from fastapi.testclient import TestClient

from character_enrichment.api.app import create_app
from character_enrichment.exceptions import AIInvocationError, ErrorKind


@pytest.fixture
def client(catalog, invoker, cache_repository):
    """Create a test client wired to in-memory fakes."""
    app = create_app(catalog=catalog, invoker=invoker, cache_store=cache_repository)
    with TestClient(app) as client:
        yield client


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Character Enrichment API"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "cache_healthy": True, "ai_model": "scripted"}


def test_enrich_entity(client, invoker):
    response = client.post("/enrichment/spike")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["attempts"] == 1
    assert data["fields"]["personality_analysis"] == "Spike Spiegel analysis"

    # Second request is served without another AI call
    response = client.post("/enrichment/spike", json={"force": False})
    assert response.status_code == 200
    assert invoker.calls_for("spike") == 1


def test_enrich_failure_is_reported_in_record(client, invoker):
    invoker.script("spike", AIInvocationError(ErrorKind.CONTENT_POLICY_REJECTED, "filtered"))

    response = client.post("/enrichment/spike")

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error_kind"] == "content_policy_rejected"


def test_enrich_unknown_entity(client):
    response = client.post("/enrichment/nobody")
    assert response.status_code == 404


def test_enrich_invalid_category(client):
    response = client.post("/enrichment/spike", json={"category": "horoscope"})
    assert response.status_code == 422


def test_manual_enrichment_and_force_conflict(client):
    response = client.put(
        "/enrichment/faye/manual",
        json={"curator_id": "curator-1", "fields": {"personality_analysis": "Curated"}},
    )
    assert response.status_code == 200
    assert response.json()["protected"] is True

    response = client.post("/enrichment/faye", json={"force": True})
    assert response.status_code == 409

    response = client.post("/enrichment/faye", json={"force": True, "keep_protection": True})
    assert response.status_code == 200
    assert response.json()["protected"] is True


def test_manual_enrichment_rejects_empty_fields(client):
    response = client.put("/enrichment/faye/manual", json={"curator_id": "c", "fields": {}})
    assert response.status_code == 400


def test_reset_and_status(client, invoker):
    invoker.script("jet", AIInvocationError(ErrorKind.MALFORMED_RESPONSE, "bad"))
    client.post("/enrichment/jet")
    client.post("/enrichment/spike")

    response = client.post("/enrichment/reset", json={"entity_ids": ["jet"]})
    assert response.status_code == 200
    assert response.json() == {"reset_count": 1, "entity_ids": ["jet"]}

    response = client.get("/enrichment/status", params={"parent_id": "bebop", "include_details": True})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["counts"]["success"] == 1
    assert data["counts"]["pending"] == 2
    assert len(data["details"]) == 3


def test_reset_rejects_unknown_status(client):
    response = client.post("/enrichment/reset", json={"entity_ids": ["jet"], "reset_to": "success"})
    assert response.status_code == 422


def test_run_batch(client, invoker):
    invoker.script("jet", AIInvocationError(ErrorKind.CONTENT_POLICY_REJECTED, "filtered"))

    response = client.post("/batches", json={"worklist": ["spike", "jet", "l"], "concurrency_limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "completed"
    assert data["progress"]["succeeded"] == 1
    assert data["progress"]["failed"] == 1
    assert data["progress"]["skipped"] == 1
    assert len(data["outcomes"]) == 3


def test_run_batch_from_selection(client):
    response = client.post("/batches", json={"parent_id": "deathnote"})

    assert response.status_code == 200
    assert response.json()["progress"]["total"] == 2


@pytest.mark.parametrize(
    "body,status_code",
    [
        ({"worklist": []}, 400),
        ({"worklist": ["spike"], "concurrency_limit": 0}, 400),
        ({"worklist": ["spike"], "force": True}, 409),
        ({"worklist": ["spike"], "parent_id": "bebop"}, 422),
    ],
)
def test_run_batch_rejects_invalid_requests(client, body, status_code):
    response = client.post("/batches", json=body)
    assert response.status_code == status_code


def test_background_batch(client):
    response = client.post("/batches/start", json={"worklist": ["spike", "jet", "light"]})
    assert response.status_code == 202
    job_id = response.json()["job_id"]

    data = {}
    for _ in range(100):
        data = client.get(f"/batches/{job_id}").json()
        if data["state"] == "completed":
            break
        time.sleep(0.01)

    assert data["state"] == "completed"
    assert data["progress"]["succeeded"] == 3

    response = client.post(f"/batches/{job_id}/cancel")
    assert response.status_code == 200
    assert response.json()["state"] == "completed"


def test_unknown_batch(client):
    assert client.get("/batches/nope").status_code == 404
    assert client.post("/batches/nope/cancel").status_code == 404


def test_cache_endpoints(client):
    client.post("/enrichment/spike")

    stats = client.get("/cache/stats").json()
    assert stats["total_entries"] == 1
    assert stats["per_category_counts"] == {"character_enrichment": 1}

    response = client.delete("/cache", params={"category": "character_enrichment"})
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1

    response = client.post("/cache/sweep")
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 0


def test_cache_invalidate_requires_one_target(client):
    assert client.delete("/cache").status_code == 400
    response = client.delete("/cache", params={"key": "k", "category": "character_enrichment"})
    assert response.status_code == 400
