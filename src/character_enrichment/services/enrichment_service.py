"""Enrichment service: the per-entity lifecycle.

Each enrichment runs under a per-entity lock and follows the same order of
checks: protection, idempotence, eligibility, cache, then the AI model under
the retry policy. The record is written through the persistence gateway only
once the outcome is known.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any

from character_enrichment.config import settings
from character_enrichment.entities import (
    EnrichmentRecord,
    EnrichmentStatus,
    EntityContext,
    UnitOutcome,
)
from character_enrichment.exceptions import (
    AIInvocationError,
    ErrorKind,
    InvalidRequestError,
    OperationCancelledError,
    PersistenceError,
    ProtectionViolationError,
)
from character_enrichment.models import PAYLOAD_SCHEMAS, CacheCategory, EnrichmentPayload, parse_payload
from character_enrichment.protocols import AIInvoker, PersistenceGateway

from .cache_service import CacheService
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

NAME_TOO_SHORT = "Character name too short"
PROTECTED_SKIP = "Protected by manual enrichment"


class EnrichmentService:
    """Core enrichment orchestration service.

    This service depends on PROTOCOLS, not concrete implementations:
    - PersistenceGateway: the catalog store
    - AIInvoker: the generative model
    - CacheService (over any CacheStore): memory or Redis

    Example:
        ```python
        service = EnrichmentService.create(
            persistence=InMemoryCatalogRepository(),
            invoker=OpenAIInvoker.create(),
            cache_service=CacheService.create(InMemoryCacheRepository()),
        )
        record = await service.enrich_one("c1")
        ```
    """

    def __init__(
        self,
        persistence: PersistenceGateway,
        invoker: AIInvoker,
        cache_service: CacheService,
        retry_policy: RetryPolicy | None = None,
        call_timeout: float | None = None,
        clock: Callable[[], float] | None = None,
        min_name_length: int | None = None,
        retry_cooldown_hours: float | None = None,
        max_selection_attempts: int | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        """Initialize the enrichment service.

        Args:
            persistence: Catalog store (required).
            invoker: AI model adapter (required).
            cache_service: Cache layer (required).
            retry_policy: Default retry policy. Defaults to settings.
            call_timeout: Per-call timeout in seconds. Defaults to settings.
            clock: Returns the current Unix time. Defaults to time.time.
            min_name_length: Names shorter than this are skipped. Defaults to settings.
            retry_cooldown_hours: Wait before failed records become eligible again.
            max_selection_attempts: Failed records with this many attempts are no longer selected.
                Defaults to settings.
            sleep: Backoff sleep, replaced in tests.
        """
        self._persistence = persistence
        self._invoker = invoker
        self._cache = cache_service
        self._retry_policy = retry_policy or RetryPolicy.from_settings()
        self._call_timeout = call_timeout or settings.ai_call_timeout
        self._clock = clock or time.time
        self._min_name_length = min_name_length if min_name_length is not None else settings.min_name_length
        self._cooldown_seconds = (
            retry_cooldown_hours if retry_cooldown_hours is not None else settings.retry_cooldown_hours
        ) * 3600
        self._max_selection_attempts = (
            max_selection_attempts if max_selection_attempts is not None else settings.retry_max_selection_attempts
        )
        self._sleep = sleep
        # entity_id -> [lock, waiters]
        self._locks: dict[str, list] = {}

    @classmethod
    def create(
        cls,
        persistence: PersistenceGateway,
        invoker: AIInvoker,
        cache_service: CacheService,
        retry_policy: RetryPolicy | None = None,
    ) -> "EnrichmentService":
        """Factory method to create EnrichmentService with settings defaults."""
        return cls(
            persistence=persistence,
            invoker=invoker,
            cache_service=cache_service,
            retry_policy=retry_policy,
        )

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str) -> AsyncIterator[None]:
        slot = self._locks.get(entity_id)
        if slot is None:
            slot = self._locks[entity_id] = [asyncio.Lock(), 0]
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[entity_id]

    async def enrich_one(
        self,
        entity_id: str,
        force: bool = False,
        keep_protection: bool | None = None,
        category: CacheCategory = CacheCategory.CHARACTER_ENRICHMENT,
    ) -> EnrichmentRecord:
        """Enrich a single entity.

        Args:
            entity_id: Catalog identifier
            force: Bypass the cache and the idempotence shortcut
            keep_protection: Required with force on a protected record
            category: Which analysis to produce

        Returns:
            The resulting enrichment record

        Raises:
            EntityNotFoundError: Unknown entity
            ProtectionViolationError: force on a protected record without keep_protection
        """
        async with self._entity_lock(entity_id):
            context = await self._persistence.load_entity(entity_id)
            record, _ = await self._process(context, force, keep_protection, category, self._retry_policy, None)
        return record

    async def process_unit(
        self,
        entity_id: str,
        force: bool = False,
        keep_protection: bool | None = None,
        category: CacheCategory = CacheCategory.CHARACTER_ENRICHMENT,
        retry_policy: RetryPolicy | None = None,
        should_continue: Callable[[], bool] | None = None,
    ) -> tuple[EnrichmentRecord | None, UnitOutcome]:
        """Enrich one worklist unit. Never raises for unit-level failures.

        Returns:
            The resulting record (None if the entity could not be loaded) and its outcome
        """
        try:
            async with self._entity_lock(entity_id):
                context = await self._persistence.load_entity(entity_id)
                return await self._process(
                    context,
                    force,
                    keep_protection,
                    category,
                    retry_policy or self._retry_policy,
                    should_continue,
                )
        except Exception as e:
            logger.exception(f"Enrichment of {entity_id} failed unexpectedly")
            return None, UnitOutcome(entity_id=entity_id, status=EnrichmentStatus.FAILED, error=str(e))

    async def _process(
        self,
        context: EntityContext,
        force: bool,
        keep_protection: bool | None,
        category: CacheCategory,
        retry_policy: RetryPolicy,
        should_continue: Callable[[], bool] | None,
    ) -> tuple[EnrichmentRecord, UnitOutcome]:
        entity_id = context.entity_id
        record = context.record

        if record.protected:
            if not force:
                logger.info(f"Skipping protected entity {entity_id}")
                return record, UnitOutcome(entity_id, EnrichmentStatus.SKIPPED, error=PROTECTED_SKIP)
            if keep_protection is None:
                raise ProtectionViolationError(entity_id)

        if not force and record.status == EnrichmentStatus.SUCCESS and self._has_content(record, category):
            self._rewarm(context, category)
            return record, UnitOutcome(entity_id, EnrichmentStatus.SUCCESS, from_cache=True)

        if len(context.name.strip()) < self._min_name_length:
            skipped = record.begin_attempt(self._clock()).skip(NAME_TOO_SHORT)
            return await self._save(record, skipped, UnitOutcome(entity_id, EnrichmentStatus.SKIPPED, error=NAME_TOO_SHORT))

        key = self._cache.key_for(category, entity_id, context.name)
        if not force:
            cached = self._cache.lookup(category, key)
            if cached is not None:
                done = record.begin_attempt(self._clock()).succeed(cached.non_empty_fields(), self._clock())
                return await self._save(record, done, UnitOutcome(entity_id, EnrichmentStatus.SUCCESS, from_cache=True))

        calls = 0
        current = record

        def on_attempt(_attempt: int) -> None:
            nonlocal calls, current
            calls += 1
            current = current.begin_attempt(self._clock())

        async def call() -> EnrichmentPayload:
            try:
                payload = await asyncio.wait_for(self._invoker.invoke(category, context), self._call_timeout)
            except asyncio.TimeoutError as e:
                raise AIInvocationError(
                    ErrorKind.TRANSIENT_NETWORK, f"AI call timed out after {self._call_timeout}s"
                ) from e
            payload = parse_payload(category, payload)
            if payload.is_empty:
                raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, "Result contains no usable fields")
            return payload

        try:
            payload = await retry_policy.execute(call, on_attempt, should_continue, sleep=self._sleep)
        except AIInvocationError as e:
            logger.warning(f"Enrichment of {entity_id} failed after {calls} call(s): {e.describe()}")
            failed = current.fail(e.describe(), e.kind.value)
            outcome = UnitOutcome(
                entity_id,
                EnrichmentStatus.FAILED,
                error=e.describe(),
                error_kind=e.kind.value,
                adapter_calls=calls,
            )
            return await self._save(record, failed, outcome)
        except OperationCancelledError as e:
            logger.info(f"Enrichment of {entity_id} cancelled: {e}")
            failed = current.fail(f"cancelled: {e}")
            return await self._save(
                record, failed, UnitOutcome(entity_id, EnrichmentStatus.FAILED, error="cancelled", adapter_calls=calls)
            )

        self._cache.store(category, key, payload)

        done = current.succeed(payload.non_empty_fields(), self._clock())
        if record.protected and keep_protection is False:
            done = done.unprotect()
        return await self._save(
            record, done, UnitOutcome(entity_id, EnrichmentStatus.SUCCESS, adapter_calls=calls)
        )

    async def _save(
        self,
        previous: EnrichmentRecord,
        record: EnrichmentRecord,
        outcome: UnitOutcome,
    ) -> tuple[EnrichmentRecord, UnitOutcome]:
        """Write a record through; a failed write turns the outcome into failed."""
        try:
            await self._persistence.save_enrichment(record.entity_id, record)
        except PersistenceError as e:
            logger.warning(f"Could not save enrichment of {record.entity_id}: {e}")
            error = f"persistence failure: {e}"
            failed = replace(previous, attempts=record.attempts, last_attempt_at=record.last_attempt_at).fail(error)
            return failed, UnitOutcome(
                record.entity_id,
                EnrichmentStatus.FAILED,
                error=error,
                adapter_calls=outcome.adapter_calls,
                from_cache=outcome.from_cache,
            )
        return record, outcome

    @staticmethod
    def _has_content(record: EnrichmentRecord, category: CacheCategory) -> bool:
        return any(record.fields.get(name) is not None for name in PAYLOAD_SCHEMAS[category].model_fields)

    def _rewarm(self, context: EntityContext, category: CacheCategory) -> None:
        names = PAYLOAD_SCHEMAS[category].model_fields
        fields = {k: v for k, v in context.record.fields.items() if k in names}
        try:
            payload = parse_payload(category, fields)
        except AIInvocationError:
            logger.debug(f"Stored fields of {context.entity_id} do not fit {category.value}, not caching")
            return
        if not payload.is_empty:
            self._cache.warm(category, self._cache.key_for(category, context.entity_id, context.name), payload)

    async def apply_manual_enrichment(
        self,
        entity_id: str,
        fields: dict[str, Any],
        curator_id: str,
        category: CacheCategory = CacheCategory.CHARACTER_ENRICHMENT,
    ) -> EnrichmentRecord:
        """Store curator-supplied fields and protect the record.

        Raises:
            InvalidRequestError: No curator, or fields that do not fit the schema
            EntityNotFoundError: Unknown entity
            PersistenceError: The catalog write failed
        """
        if not curator_id or not curator_id.strip():
            raise InvalidRequestError("curator_id is required")
        try:
            payload = parse_payload(category, fields)
        except AIInvocationError as e:
            raise InvalidRequestError(e.message) from e
        if payload.is_empty:
            raise InvalidRequestError("Manual enrichment must contain at least one non-empty field")

        async with self._entity_lock(entity_id):
            context = await self._persistence.load_entity(entity_id)
            now = self._clock()
            record = context.record.succeed(payload.non_empty_fields(), now).protect(curator_id, now)
            await self._persistence.save_enrichment(entity_id, record)
            self._cache.discard_entity(entity_id, context.name)

        logger.info(f"Manual enrichment applied to {entity_id} by {curator_id}")
        return record

    async def reset_status(
        self,
        entity_ids: list[str],
        reset_to: EnrichmentStatus = EnrichmentStatus.PENDING,
    ) -> list[EnrichmentRecord]:
        """Administrative reset of attempts and errors. Content and protection are kept.

        Returns:
            The reset records (unknown ids are skipped)
        """
        if reset_to not in (EnrichmentStatus.PENDING, EnrichmentStatus.FAILED):
            raise InvalidRequestError(f"Cannot reset to {reset_to.value}; use pending or failed")

        reset: list[EnrichmentRecord] = []
        for entity_id in entity_ids:
            async with self._entity_lock(entity_id):
                try:
                    context = await self._persistence.load_entity(entity_id)
                except PersistenceError as e:
                    logger.warning(f"Skipping reset of {entity_id}: {e}")
                    continue
                record = context.record.reset(reset_to)
                await self._persistence.save_enrichment(entity_id, record)
                reset.append(record)

        logger.info(f"Reset {len(reset)}/{len(entity_ids)} records to {reset_to.value}")
        return reset

    async def select_eligible(
        self,
        parent_id: str | None = None,
        include_retries: bool = False,
        limit: int | None = None,
    ) -> list[str]:
        """Build a worklist of entities that need enrichment.

        Unprotected pending records are always eligible. Failed records are
        eligible with include_retries once the retry cooldown has elapsed, as
        long as they have used fewer than max_selection_attempts attempts.
        """
        now = self._clock()
        eligible: list[str] = []
        for entity_id in await self._persistence.list_entity_ids(parent_id):
            record = (await self._persistence.load_entity(entity_id)).record
            if record.protected:
                continue
            if record.status == EnrichmentStatus.PENDING:
                eligible.append(entity_id)
            elif record.status == EnrichmentStatus.FAILED and include_retries:
                if record.attempts >= self._max_selection_attempts:
                    continue
                if record.last_attempt_at is None or now - record.last_attempt_at >= self._cooldown_seconds:
                    eligible.append(entity_id)
            if limit is not None and len(eligible) >= limit:
                break
        return eligible

    async def status_report(self, parent_id: str | None = None, include_details: bool = False) -> dict:
        """Summarize enrichment state.

        Returns:
            Dictionary with total, per-status counts, protected count,
            percentage_complete and, optionally, per-entity details
        """
        counts = {status.value: 0 for status in EnrichmentStatus}
        protected = 0
        details = []
        entity_ids = await self._persistence.list_entity_ids(parent_id)
        for entity_id in entity_ids:
            context = await self._persistence.load_entity(entity_id)
            record = context.record
            counts[record.status.value] += 1
            if record.protected:
                protected += 1
            if include_details:
                details.append(
                    {
                        "entity_id": entity_id,
                        "name": context.name,
                        "status": record.status.value,
                        "attempts": record.attempts,
                        "protected": record.protected,
                        "last_error": record.last_error,
                    }
                )

        total = len(entity_ids)
        report: dict[str, Any] = {
            "total": total,
            "counts": counts,
            "protected": protected,
            "percentage_complete": round(counts["success"] / total * 100, 1) if total else 0.0,
        }
        if include_details:
            report["details"] = details
        return report

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy
