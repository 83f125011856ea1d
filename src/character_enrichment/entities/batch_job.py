"""Batch job domain entities."""

from dataclasses import dataclass, field

from .enrichment_record import EnrichmentStatus


@dataclass(frozen=True)
class UnitOutcome:
    """Terminal outcome of one worklist unit.

    Attributes:
        entity_id: The processed entity
        status: success, failed or skipped
        error: Failure or skip description
        error_kind: Failure classification, if any
        adapter_calls: Number of AI invocations made for this unit
        from_cache: True if the result came from the cache or stored record
    """

    entity_id: str
    status: EnrichmentStatus
    error: str | None = None
    error_kind: str | None = None
    adapter_calls: int = 0
    from_cache: bool = False


@dataclass
class BatchProgress:
    """Progress counters of a batch job. Strictly additive per bucket."""

    total: int
    queued: int = 0
    in_flight: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    not_processed: int = 0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    @property
    def is_terminal(self) -> bool:
        return self.completed + self.not_processed == self.total

    def record(self, status: EnrichmentStatus) -> None:
        """Move one unit from in-flight to its terminal bucket."""
        self.in_flight -= 1
        if status == EnrichmentStatus.SUCCESS:
            self.succeeded += 1
        elif status == EnrichmentStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def snapshot(self) -> "BatchProgress":
        return BatchProgress(
            total=self.total,
            queued=self.queued,
            in_flight=self.in_flight,
            succeeded=self.succeeded,
            failed=self.failed,
            skipped=self.skipped,
            not_processed=self.not_processed,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "queued": self.queued,
            "in_flight": self.in_flight,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "not_processed": self.not_processed,
        }


@dataclass(frozen=True)
class BatchJob:
    """Summary of a batch run. Immutable once terminal."""

    job_id: str
    worklist: tuple[str, ...]
    concurrency_limit: int
    progress: BatchProgress
    started_at: float
    finished_at: float | None = None
    cancelled: bool = False
    outcomes: tuple[UnitOutcome, ...] = field(default_factory=tuple)

    @property
    def state(self) -> str:
        if self.finished_at is None:
            return "running"
        return "cancelled" if self.cancelled else "completed"

    @property
    def failures(self) -> tuple[UnitOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == EnrichmentStatus.FAILED)
