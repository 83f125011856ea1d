"""Batch orchestrator: concurrent enrichment over a worklist.

A fixed pool of workers drains a shared queue. Each unit goes through
EnrichmentService.process_unit, which never raises for unit failures, so one
bad entity cannot abort the batch. Cancellation is cooperative: workers stop
dequeuing, units waiting between retries give up, and units never started
are reported as not_processed.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable

from character_enrichment.config import settings
from character_enrichment.entities import BatchJob, BatchProgress, UnitOutcome
from character_enrichment.exceptions import InvalidRequestError, ProtectionViolationError
from character_enrichment.models import CacheCategory

from .enrichment_service import EnrichmentService
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class BatchHandle:
    """Handle of a batch started in the background."""

    def __init__(
        self,
        job_id: str,
        progress: BatchProgress,
        cancel_event: asyncio.Event,
        task: "asyncio.Task[BatchJob]",
    ) -> None:
        self.job_id = job_id
        self.progress = progress
        self._cancel_event = cancel_event
        self._task = task

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def job(self) -> BatchJob | None:
        """The final summary, once the batch has terminated."""
        if not self._task.done() or self._task.cancelled():
            return None
        return self._task.result()

    async def wait(self) -> BatchJob:
        return await self._task


class BatchOrchestrator:
    """Runs enrichment over worklists with bounded concurrency.

    Example:
        ```python
        orchestrator = BatchOrchestrator(enrichment_service)
        job = await orchestrator.run(["c1", "c2", "c3"], concurrency_limit=2)
        print(job.progress.to_dict())

        handle = orchestrator.start(worklist)
        handle.cancel()
        job = await handle.wait()
        ```
    """

    def __init__(
        self,
        enrichment_service: EnrichmentService,
        concurrency_limit: int | None = None,
        clock: Callable[[], float] | None = None,
        max_retained_jobs: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            enrichment_service: Per-unit enrichment (required).
            concurrency_limit: Default worker count. Defaults to settings.
            clock: Returns the current Unix time. Defaults to time.time.
            max_retained_jobs: Finished background jobs kept for polling. Defaults to settings.
        """
        self._service = enrichment_service
        self._concurrency_limit = concurrency_limit or settings.batch_concurrency_limit
        self._clock = clock or time.time
        self._max_retained_jobs = max_retained_jobs or settings.batch_retained_jobs
        self._handles: dict[str, BatchHandle] = {}
        # Finished job ids, oldest first
        self._finished: deque[str] = deque()

    @classmethod
    def create(cls, enrichment_service: EnrichmentService) -> "BatchOrchestrator":
        """Factory method to create BatchOrchestrator with settings defaults."""
        return cls(enrichment_service=enrichment_service)

    def _validate(
        self,
        worklist: list[str],
        concurrency_limit: int | None,
        force: bool,
        keep_protection: bool | None,
    ) -> int:
        if not worklist:
            raise InvalidRequestError("Worklist is empty")
        limit = self._concurrency_limit if concurrency_limit is None else concurrency_limit
        if limit <= 0:
            raise InvalidRequestError(f"concurrency_limit must be positive, got {limit}")
        if force and keep_protection is None:
            raise ProtectionViolationError()
        return limit

    async def run(
        self,
        worklist: list[str],
        concurrency_limit: int | None = None,
        retry_policy: RetryPolicy | None = None,
        force: bool = False,
        keep_protection: bool | None = None,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
        category: CacheCategory = CacheCategory.CHARACTER_ENRICHMENT,
    ) -> BatchJob:
        """Run a batch to completion and return its frozen summary.

        Raises:
            InvalidRequestError: Empty worklist or non-positive concurrency limit
            ProtectionViolationError: force without a keep_protection decision
        """
        limit = self._validate(worklist, concurrency_limit, force, keep_protection)
        return await self._execute(
            job_id=uuid.uuid4().hex,
            worklist=list(worklist),
            progress=BatchProgress(total=len(worklist), queued=len(worklist)),
            limit=limit,
            retry_policy=retry_policy,
            force=force,
            keep_protection=keep_protection,
            cancel_event=cancel_event or asyncio.Event(),
            on_progress=on_progress,
            category=category,
        )

    def start(
        self,
        worklist: list[str],
        concurrency_limit: int | None = None,
        retry_policy: RetryPolicy | None = None,
        force: bool = False,
        keep_protection: bool | None = None,
        on_progress: ProgressCallback | None = None,
        category: CacheCategory = CacheCategory.CHARACTER_ENRICHMENT,
    ) -> BatchHandle:
        """Start a batch in the background. Must be called from a running event loop.

        Validation errors are raised here, before the batch starts.
        """
        limit = self._validate(worklist, concurrency_limit, force, keep_protection)
        job_id = uuid.uuid4().hex
        progress = BatchProgress(total=len(worklist), queued=len(worklist))
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self._execute(
                job_id=job_id,
                worklist=list(worklist),
                progress=progress,
                limit=limit,
                retry_policy=retry_policy,
                force=force,
                keep_protection=keep_protection,
                cancel_event=cancel_event,
                on_progress=on_progress,
                category=category,
            )
        )
        handle = BatchHandle(job_id, progress, cancel_event, task)
        self._handles[job_id] = handle
        task.add_done_callback(lambda _: self._retire(job_id))
        return handle

    def get_handle(self, job_id: str) -> BatchHandle | None:
        return self._handles.get(job_id)

    def _retire(self, job_id: str) -> None:
        """Record a finished job and evict the oldest ones beyond the retention limit."""
        self._finished.append(job_id)
        while len(self._finished) > self._max_retained_jobs:
            evicted = self._finished.popleft()
            self._handles.pop(evicted, None)
            logger.debug(f"Evicted finished batch {evicted}")

    async def _execute(
        self,
        job_id: str,
        worklist: list[str],
        progress: BatchProgress,
        limit: int,
        retry_policy: RetryPolicy | None,
        force: bool,
        keep_protection: bool | None,
        cancel_event: asyncio.Event,
        on_progress: ProgressCallback | None,
        category: CacheCategory,
    ) -> BatchJob:
        started_at = self._clock()
        logger.info(f"Batch {job_id} started: {len(worklist)} units, concurrency {limit}")

        queue: asyncio.Queue[tuple[int, str]] = asyncio.Queue()
        for index, entity_id in enumerate(worklist):
            queue.put_nowait((index, entity_id))
        outcomes: list[UnitOutcome | None] = [None] * len(worklist)

        def report() -> None:
            if on_progress is None:
                return
            try:
                on_progress(progress.snapshot())
            except Exception:
                logger.exception(f"Progress callback failed for batch {job_id}")

        async def worker() -> None:
            while not cancel_event.is_set():
                try:
                    index, entity_id = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                progress.queued -= 1
                progress.in_flight += 1
                report()

                _, outcome = await self._service.process_unit(
                    entity_id,
                    force=force,
                    keep_protection=keep_protection,
                    category=category,
                    retry_policy=retry_policy,
                    should_continue=lambda: not cancel_event.is_set(),
                )
                outcomes[index] = outcome
                progress.record(outcome.status)
                report()

        await asyncio.gather(*(worker() for _ in range(min(limit, len(worklist)))))

        progress.not_processed = progress.queued
        progress.queued = 0
        cancelled = cancel_event.is_set()
        report()

        job = BatchJob(
            job_id=job_id,
            worklist=tuple(worklist),
            concurrency_limit=limit,
            progress=progress.snapshot(),
            started_at=started_at,
            finished_at=self._clock(),
            cancelled=cancelled,
            outcomes=tuple(o for o in outcomes if o is not None),
        )
        logger.info(
            f"Batch {job_id} {job.state}: {progress.succeeded} succeeded, {progress.failed} failed, "
            f"{progress.skipped} skipped, {progress.not_processed} not processed"
        )
        return job
