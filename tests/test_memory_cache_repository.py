"""
Tests for the in-memory cache store.
"""

from concurrent.futures import ThreadPoolExecutor

from character_enrichment.protocols import CacheStore
from character_enrichment.repositories import InMemoryCacheRepository


def test_satisfies_protocol(cache_repository):
    assert isinstance(cache_repository, CacheStore)


def test_hit_before_ttl_miss_at_ttl(cache_repository, clock):
    """An entry is live strictly before expires_at and expired from it on."""
    cache_repository.put("character_enrichment:c1:spike", '{"a": 1}', 60, "character_enrichment")

    clock.advance(59.999)
    entry = cache_repository.get("character_enrichment:c1:spike")
    assert entry is not None
    assert entry.payload == '{"a": 1}'

    clock.advance(0.001)
    assert cache_repository.get("character_enrichment:c1:spike") is None


def test_put_overwrites_wholesale(cache_repository, clock):
    cache_repository.put("k", "old", 10, "character_enrichment")
    clock.advance(5)
    entry = cache_repository.put("k", "new", 100, "timeline_analysis")

    assert entry.created_at == clock.now
    stored = cache_repository.get("k")
    assert stored.payload == "new"
    assert stored.category == "timeline_analysis"
    assert stored.expires_at == clock.now + 100


def test_get_missing_key(cache_repository):
    assert cache_repository.get("nope") is None


def test_invalidate(cache_repository):
    cache_repository.put("k", "v", 10, "character_enrichment")

    assert cache_repository.invalidate("k") is True
    assert cache_repository.invalidate("k") is False
    assert cache_repository.get("k") is None


def test_invalidate_category_leaves_other_categories(cache_repository):
    cache_repository.put("a", "v", 10, "character_enrichment")
    cache_repository.put("b", "v", 10, "character_enrichment")
    cache_repository.put("c", "v", 10, "relationship_analysis")

    assert cache_repository.invalidate_category("character_enrichment") == 2
    assert cache_repository.get("c") is not None
    assert cache_repository.invalidate_category("character_enrichment") == 0


def test_sweep_removes_only_expired(cache_repository, clock):
    cache_repository.put("short", "v", 10, "character_enrichment")
    cache_repository.put("long", "v", 1000, "character_enrichment")
    clock.advance(10)

    assert cache_repository.sweep_expired() == 1
    assert cache_repository.sweep_expired() == 0
    assert cache_repository.get("long") is not None
    assert cache_repository.stats()["total_entries"] == 1


def test_stats_counts_expired_until_swept(cache_repository, clock):
    cache_repository.put("a", "v", 10, "character_enrichment")
    cache_repository.put("b", "vv", 100, "relationship_analysis")
    clock.advance(20)

    stats = cache_repository.stats()

    assert stats["total_entries"] == 2
    assert stats["expired_count"] == 1
    assert stats["per_category_counts"] == {"character_enrichment": 1, "relationship_analysis": 1}
    assert stats["approximate_byte_size"] == len("av") + len("bvv")


def test_health_check(cache_repository):
    assert cache_repository.health_check() is True


def test_concurrent_reads_and_writes():
    repo = InMemoryCacheRepository()

    def work(i: int) -> None:
        key = f"k{i % 10}"
        repo.put(key, str(i), 60, "character_enrichment")
        repo.get(key)
        repo.stats()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(200)))

    assert repo.stats()["total_entries"] == 10
