#!/usr/bin/env python3
"""
Demo script for character enrichment.

This script walks through the enrichment flow on a small in-memory catalog:
a fresh enrichment, a cache hit, manual protection, a batch with partial
failures and the cache statistics.

Without OPENAI_API_KEY it uses an offline invoker that fabricates results.
"""

import asyncio
import random
import time

from character_enrichment import (
    AIInvocationError,
    BatchOrchestrator,
    CacheCategory,
    CacheService,
    CharacterEnrichment,
    EnrichmentService,
    ErrorKind,
    InMemoryCacheRepository,
    InMemoryCatalogRepository,
    OpenAIInvoker,
    RetryPolicy,
    settings,
)
from character_enrichment.config import configure_logging

CHARACTERS = [
    ("spike", "Spike Spiegel", "bebop", "Cowboy Bebop", {"role": "Main"}),
    ("faye", "Faye Valentine", "bebop", "Cowboy Bebop", {"role": "Main"}),
    ("jet", "Jet Black", "bebop", "Cowboy Bebop", {"role": "Main"}),
    ("ein", "Ein", "bebop", "Cowboy Bebop", {"role": "Supporting"}),
    ("l", "L", "deathnote", "Death Note", {"role": "Main"}),
    ("light", "Light Yagami", "deathnote", "Death Note", {"role": "Main"}),
]


class OfflineInvoker:
    """Fabricates results and fails transiently now and then."""

    model_name = "offline-demo"

    def __init__(self, failure_rate: float = 0.3) -> None:
        self.calls = 0
        self._failure_rate = failure_rate
        self._random = random.Random(7)

    async def invoke(self, category, context):
        self.calls += 1
        await asyncio.sleep(0.05)
        if self._random.random() < self._failure_rate:
            raise AIInvocationError(ErrorKind.TRANSIENT_NETWORK, "simulated connection reset")
        return CharacterEnrichment(
            personality_analysis=f"{context.name} is a memorable character of {context.parent_title}.",
            trivia=[f"{context.name} appears in {context.parent_title}."],
        )


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def build_catalog() -> InMemoryCatalogRepository:
    catalog = InMemoryCatalogRepository()
    for entity_id, name, parent_id, parent_title, attributes in CHARACTERS:
        catalog.add_entity(entity_id, name, parent_id=parent_id, parent_title=parent_title, attributes=attributes)
    return catalog


async def demo_single(service: EnrichmentService, invoker) -> None:
    """Demonstrate a fresh enrichment followed by an idempotent repeat."""
    print_section("Single Enrichment")

    start = time.time()
    record = await service.enrich_one("spike")
    print(f"\n  First call:  status={record.status.value} attempts={record.attempts} "
          f"({(time.time() - start) * 1000:.0f}ms)")
    print(f"  Fields: {sorted(record.fields)}")

    calls_before = getattr(invoker, "calls", None)
    record = await service.enrich_one("spike")
    print(f"  Second call: status={record.status.value} attempts={record.attempts}")
    if calls_before is not None:
        print(f"  AI calls made by the repeat: {invoker.calls - calls_before}")

    record = await service.enrich_one("l")
    print(f"\n  'L' (name too short): status={record.status.value} reason={record.last_error}")


async def demo_manual(service: EnrichmentService) -> None:
    """Demonstrate curator protection."""
    print_section("Manual Enrichment and Protection")

    record = await service.apply_manual_enrichment(
        "faye",
        {"personality_analysis": "Curated by hand.", "notable_quotes": ["I'm not a kid anymore."]},
        curator_id="curator-1",
    )
    print(f"\n  Protected: {record.protected} by {record.protected_by}")

    record = await service.enrich_one("faye")
    print(f"  Automated enrichment afterwards leaves it alone: {record.fields['personality_analysis']!r}")


async def demo_batch(service: EnrichmentService) -> None:
    """Demonstrate a batch with retries and partial failures."""
    print_section("Batch Enrichment")

    orchestrator = BatchOrchestrator(service, concurrency_limit=2)
    worklist = await service.select_eligible()
    print(f"\n  Eligible: {worklist}")

    def on_progress(progress) -> None:
        print(f"    progress: {progress.completed}/{progress.total} (in flight: {progress.in_flight})")

    job = await orchestrator.run(
        worklist,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.05),
        on_progress=on_progress,
    )
    print(f"\n  Batch {job.state}: {job.progress.to_dict()}")
    for outcome in job.failures:
        print(f"  ✗ {outcome.entity_id}: {outcome.error}")

    report = await service.status_report()
    print(f"\n  Status report: {report['counts']} ({report['percentage_complete']}% complete)")


def demo_cache_stats(cache: CacheService) -> None:
    """Show cache statistics."""
    print_section("Cache Statistics")

    stats = cache.get_stats()
    print(f"\n  Entries: {stats['total_entries']} (valid: {stats['valid_entries']})")
    print(f"  Per category: {stats['per_category_counts']}")
    print(f"  Hit rate: {stats['hit_rate']:.2%} over {stats['lookups']} lookups")
    print(f"  Swept: {cache.clear_expired()} expired entries")
    key = cache.key_for(CacheCategory.CHARACTER_ENRICHMENT, "spike", "Spike Spiegel")
    print(f"  Example key: {key}")


async def run() -> None:
    invoker = OpenAIInvoker.create() if settings.openai_api_key else OfflineInvoker()
    cache = CacheService.create(repository=InMemoryCacheRepository.create())
    service = EnrichmentService.create(persistence=build_catalog(), invoker=invoker, cache_service=cache)

    try:
        await demo_single(service, invoker)
        await demo_manual(service)
        await demo_batch(service)
        demo_cache_stats(cache)
    finally:
        if isinstance(invoker, OpenAIInvoker):
            await invoker.close()


def main() -> None:
    """Run all demos."""
    configure_logging("WARNING")
    print("\n🚀 Character Enrichment Demo")
    print("=" * 70)

    try:
        asyncio.run(run())

        print("\n" + "=" * 70)
        print("✅ Demo completed successfully!")
        print("=" * 70)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("\nSet OPENAI_API_KEY to use the real model, or unset it for the offline demo.")


if __name__ == "__main__":
    main()
