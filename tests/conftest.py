"""
Shared fixtures: a controllable clock, a scripted AI invoker and a small catalog.
"""

import asyncio

import pytest

from character_enrichment.entities import EnrichmentRecord, EnrichmentStatus
from character_enrichment.models import CharacterEnrichment
from character_enrichment.repositories import InMemoryCacheRepository, InMemoryCatalogRepository
from character_enrichment.services import BatchOrchestrator, CacheService, EnrichmentService, RetryPolicy

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedInvoker:
    """AIInvoker fake.

    scripts maps an entity id to a list of results consumed one per call;
    each item is a payload, a dict, or an exception to raise. Entities
    without a script (or with an exhausted one) get a default payload.
    """

    model_name = "scripted"

    def __init__(self, delay: float = 0.0) -> None:
        self.scripts: dict[str, list] = {}
        self.calls: list[str] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    def script(self, entity_id: str, *results) -> None:
        self.scripts[entity_id] = list(results)

    def calls_for(self, entity_id: str) -> int:
        return self.calls.count(entity_id)

    async def invoke(self, category, context):
        self.calls.append(context.entity_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue = self.scripts.get(context.entity_id)
            result = queue.pop(0) if queue else None
            if result is None:
                return CharacterEnrichment(
                    personality_analysis=f"{context.name} analysis",
                    trivia=[f"{context.name} trivia"],
                )
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.in_flight -= 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def invoker():
    return ScriptedInvoker()


@pytest.fixture
def catalog():
    catalog = InMemoryCatalogRepository()
    catalog.add_entity("spike", "Spike Spiegel", parent_id="bebop", parent_title="Cowboy Bebop",
                       attributes={"role": "Main"})
    catalog.add_entity("faye", "Faye Valentine", parent_id="bebop", parent_title="Cowboy Bebop")
    catalog.add_entity("jet", "Jet Black", parent_id="bebop", parent_title="Cowboy Bebop")
    catalog.add_entity("light", "Light Yagami", parent_id="deathnote", parent_title="Death Note")
    catalog.add_entity("l", "L", parent_id="deathnote", parent_title="Death Note")
    return catalog


@pytest.fixture
def protected_record():
    return EnrichmentRecord(
        entity_id="faye",
        status=EnrichmentStatus.SUCCESS,
        attempts=1,
        protected=True,
        protected_by="curator-1",
        protected_at=START_TIME - 100,
        fields={"personality_analysis": "Curated"},
    )


@pytest.fixture
def cache_repository(clock):
    return InMemoryCacheRepository(clock=clock)


@pytest.fixture
def cache_service(cache_repository):
    return CacheService(cache_repository, key_max_length=200)


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0)


@pytest.fixture
def make_service(catalog, invoker, cache_service, retry_policy, clock, fake_sleep):
    def _make(**overrides) -> EnrichmentService:
        options = {
            "persistence": catalog,
            "invoker": invoker,
            "cache_service": cache_service,
            "retry_policy": retry_policy,
            "call_timeout": 5.0,
            "clock": clock,
            "min_name_length": 2,
            "retry_cooldown_hours": 24,
            "sleep": fake_sleep,
        }
        options.update(overrides)
        return EnrichmentService(**options)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def orchestrator(service, clock):
    return BatchOrchestrator(service, concurrency_limit=2, clock=clock)
