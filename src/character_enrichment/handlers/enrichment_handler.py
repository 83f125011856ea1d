"""HTTP handlers for enrichment and batch operations."""

from dataclasses import asdict

from fastapi import HTTPException, status

from character_enrichment.dto import (
    BatchJobResponse,
    BatchRequest,
    EnrichmentRecordResponse,
    EnrichRequest,
    ManualEnrichmentRequest,
    ResetStatusRequest,
    ResetStatusResponse,
    StatusReportResponse,
    UnitOutcomeItem,
)
from character_enrichment.entities import BatchJob, EnrichmentRecord, EnrichmentStatus
from character_enrichment.exceptions import InvalidRequestError
from character_enrichment.services import BatchHandle, BatchOrchestrator, EnrichmentService

from .errors import http_error


def _record_response(record: EnrichmentRecord) -> EnrichmentRecordResponse:
    data = asdict(record)
    data["status"] = record.status.value
    return EnrichmentRecordResponse(**data)


def _job_response(job: BatchJob) -> BatchJobResponse:
    return BatchJobResponse(
        job_id=job.job_id,
        state=job.state,
        progress=job.progress.to_dict(),
        concurrency_limit=job.concurrency_limit,
        started_at=job.started_at,
        finished_at=job.finished_at,
        outcomes=[
            UnitOutcomeItem(
                entity_id=o.entity_id,
                status=o.status.value,
                error=o.error,
                error_kind=o.error_kind,
                adapter_calls=o.adapter_calls,
                from_cache=o.from_cache,
            )
            for o in job.outcomes
        ],
    )


def _handle_response(handle: BatchHandle) -> BatchJobResponse:
    job = handle.job
    if job is not None:
        return _job_response(job)
    return BatchJobResponse(
        job_id=handle.job_id,
        state="cancelling" if handle.cancel_requested else "running",
        progress=handle.progress.to_dict(),
    )


class EnrichmentHandler:
    """HTTP handlers for enrichment operations.

    Delegates to EnrichmentService for single entities and to
    BatchOrchestrator for worklists.
    """

    def __init__(self, enrichment_service: EnrichmentService, orchestrator: BatchOrchestrator) -> None:
        self._service = enrichment_service
        self._orchestrator = orchestrator

    async def enrich_one(self, entity_id: str, request: EnrichRequest) -> EnrichmentRecordResponse:
        """Handle POST /enrichment/{entity_id} requests."""
        try:
            record = await self._service.enrich_one(
                entity_id,
                force=request.force,
                keep_protection=request.keep_protection,
                category=request.category,
            )
            return _record_response(record)
        except Exception as e:
            raise http_error("enrich entity", e) from e

    async def apply_manual(self, entity_id: str, request: ManualEnrichmentRequest) -> EnrichmentRecordResponse:
        """Handle PUT /enrichment/{entity_id}/manual requests."""
        try:
            record = await self._service.apply_manual_enrichment(
                entity_id,
                fields=request.fields,
                curator_id=request.curator_id,
                category=request.category,
            )
            return _record_response(record)
        except Exception as e:
            raise http_error("apply manual enrichment", e) from e

    async def reset_status(self, request: ResetStatusRequest) -> ResetStatusResponse:
        """Handle POST /enrichment/reset requests."""
        try:
            records = await self._service.reset_status(
                request.entity_ids,
                reset_to=EnrichmentStatus(request.reset_to),
            )
            return ResetStatusResponse(
                reset_count=len(records),
                entity_ids=[r.entity_id for r in records],
            )
        except Exception as e:
            raise http_error("reset status", e) from e

    async def status_report(self, parent_id: str | None, include_details: bool) -> StatusReportResponse:
        """Handle GET /enrichment/status requests."""
        try:
            report = await self._service.status_report(parent_id=parent_id, include_details=include_details)
            return StatusReportResponse(**report)
        except Exception as e:
            raise http_error("build status report", e) from e

    async def _worklist(self, request: BatchRequest) -> list[str]:
        if request.worklist is not None:
            return request.worklist
        worklist = await self._service.select_eligible(
            parent_id=request.parent_id,
            include_retries=request.include_retries,
            limit=request.limit,
        )
        if not worklist:
            raise InvalidRequestError("No eligible entities to enrich")
        return worklist

    async def run_batch(self, request: BatchRequest) -> BatchJobResponse:
        """Handle POST /batches requests: run to completion."""
        try:
            job = await self._orchestrator.run(
                await self._worklist(request),
                concurrency_limit=request.concurrency_limit,
                force=request.force,
                keep_protection=request.keep_protection,
                category=request.category,
            )
            return _job_response(job)
        except Exception as e:
            raise http_error("run batch", e) from e

    async def start_batch(self, request: BatchRequest) -> BatchJobResponse:
        """Handle POST /batches/start requests: run in the background."""
        try:
            handle = self._orchestrator.start(
                await self._worklist(request),
                concurrency_limit=request.concurrency_limit,
                force=request.force,
                keep_protection=request.keep_protection,
                category=request.category,
            )
            return _handle_response(handle)
        except Exception as e:
            raise http_error("start batch", e) from e

    def _get_handle(self, job_id: str) -> BatchHandle:
        handle = self._orchestrator.get_handle(job_id)
        if handle is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Batch not found: {job_id}")
        return handle

    async def get_batch(self, job_id: str) -> BatchJobResponse:
        """Handle GET /batches/{job_id} requests."""
        return _handle_response(self._get_handle(job_id))

    async def cancel_batch(self, job_id: str) -> BatchJobResponse:
        """Handle POST /batches/{job_id}/cancel requests."""
        handle = self._get_handle(job_id)
        handle.cancel()
        return _handle_response(handle)
