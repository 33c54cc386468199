"""In-memory implementation of SamplingApiPort.

Async-safe using an asyncio.Lock. Each status request advances a job by a
fixed number of rounds, which makes the progression deterministic for tests
and for the command line demo. Not a sampling engine: rows are synthetic.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sampling_jobs.core.exceptions import SamplingApiException
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.models.api_error import ApiErrorResponse
from sampling_jobs.core.models.job import (
    JobStatus,
    JobStatusResponse,
    RoundResult,
    StartJobResponse,
)
from sampling_jobs.core.models.merged_sample import MergedSamplePage, Pagination
from sampling_jobs.core.models.sampling_request import SamplingRequest, request_payload


@dataclass
class _StoredJob:
    id: str
    dataset_id: int
    version_id: int
    request: Dict[str, Any]
    rounds: List[Dict[str, Any]]
    status: JobStatus = JobStatus.pending
    results: List[RoundResult] = field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status_calls: int = 0

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)


class InMemorySamplingApi(SamplingApiPort):
    """Scriptable fake of the sampling service.

    Args:
        rounds_per_poll: Rounds completed by each status request
        sync_threshold: Jobs with at most this many rounds finish inside start_job
        embed_results: Whether synchronous start responses embed the round results
        fail_at_round: Round number that fails instead of completing
        failure_message: Error message reported for the failing round
        rows_per_round: Synthetic rows produced by each round
        start_error: When set, every start_job call is rejected with it
    """

    def __init__(
        self,
        rounds_per_poll: int = 1,
        sync_threshold: Optional[int] = None,
        embed_results: bool = True,
        fail_at_round: Optional[int] = None,
        failure_message: str = "Sampling round failed",
        rows_per_round: int = 10,
        start_error: Optional[ApiErrorResponse] = None,
    ) -> None:
        if rounds_per_poll < 1:
            raise ValueError("rounds_per_poll must be >= 1")
        self.rounds_per_poll = rounds_per_poll
        self.sync_threshold = sync_threshold
        self.embed_results = embed_results
        self.fail_at_round = fail_at_round
        self.failure_message = failure_message
        self.rows_per_round = rows_per_round
        self.start_error = start_error
        self._jobs: Dict[str, _StoredJob] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def start_job(
        self,
        dataset_id: int,
        version_id: int,
        request: SamplingRequest | Dict[str, Any],
    ) -> StartJobResponse:
        instance = f"/sampling/{dataset_id}/{version_id}/multi-round/run"
        if self.start_error is not None:
            raise SamplingApiException(self.start_error.with_instance(instance))

        payload = request_payload(request)
        rounds = payload.get("rounds") or []
        if not rounds:
            raise SamplingApiException(
                ApiErrorResponse(
                    title="Invalid Sampling Request",
                    status=422,
                    detail="At least one sampling round is required",
                    instance=instance,
                )
            )

        async with self._lock:
            job = _StoredJob(
                id=str(self._next_id),
                dataset_id=dataset_id,
                version_id=version_id,
                request=dict(payload),
                rounds=list(rounds),
            )
            self._next_id += 1
            self._jobs[job.id] = job

            if self.sync_threshold is None or job.total_rounds > self.sync_threshold:
                return StartJobResponse(
                    job_id=job.id,
                    status=JobStatus.pending,
                    message="Multi-round sampling job started",
                )

            self._advance(job, job.total_rounds)
            if not self.embed_results:
                return StartJobResponse(
                    job_id=job.id,
                    status=job.status,
                    message="Multi-round sampling finished",
                )
            return StartJobResponse(
                job_id=job.id,
                status=job.status,
                message="Multi-round sampling finished",
                total_rounds=job.total_rounds,
                completed_rounds=len(job.results),
                round_results=list(job.results),
                error_message=job.error_message,
                residual_uri=self._residual_uri(job),
                created_at=job.created_at,
                started_at=job.started_at,
                completed_at=job.completed_at,
            )

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        async with self._lock:
            job = self._get(job_id, f"/sampling/multi-round/jobs/{job_id}")
            job.status_calls += 1
            if not job.status.is_terminal:
                self._advance(job, self.rounds_per_poll)
            return self._status_response(job)

    async def get_merged_sample(self, job_id: str, page: int, page_size: int) -> MergedSamplePage:
        instance = f"/sampling/multi-round/jobs/{job_id}/merged-sample"
        async with self._lock:
            job = self._get(job_id, instance)
            if job.status != JobStatus.completed:
                raise SamplingApiException(
                    ApiErrorResponse(
                        title="Job Not Completed",
                        status=409,
                        detail=f"Job {job_id} is {job.status}, merged sample not available",
                        instance=instance,
                    )
                )
            rows = self._merged_rows(job)

        start = (page - 1) * page_size
        return MergedSamplePage(
            rows=rows[start:start + page_size],
            pagination=Pagination(
                page=page,
                page_size=page_size,
                total=len(rows),
                has_more=start + page_size < len(rows),
            ),
            columns=["round_number", "method", "row_index"],
            file_path=f"memory://jobs/{job_id}/merged.csv",
            job_id=job_id,
        )

    def status_calls(self, job_id: str) -> int:
        """Number of status requests served for a job."""
        return self._jobs[job_id].status_calls

    def _get(self, job_id: str, instance: str) -> _StoredJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise SamplingApiException(
                ApiErrorResponse(
                    title="Job Not Found",
                    status=404,
                    detail=f"Job {job_id} not found",
                    instance=instance,
                )
            )
        return job

    def _advance(self, job: _StoredJob, rounds: int) -> None:
        now = datetime.now(timezone.utc)
        if job.started_at is None:
            job.started_at = now
        job.status = JobStatus.running
        for _ in range(rounds):
            number = len(job.results) + 1
            if number > job.total_rounds:
                break
            if self.fail_at_round == number:
                job.status = JobStatus.failed
                job.error_message = f"Round {number}: {self.failure_message}"
                job.completed_at = now
                return
            round_def = job.rounds[number - 1]
            job.results.append(
                RoundResult(
                    round_number=number,
                    method=str(round_def.get("method", "random")),
                    sample_size=self.rows_per_round,
                    output_uri=f"memory://jobs/{job.id}/{round_def.get('output_name', f'round_{number}')}",
                    started_at=now,
                    completed_at=now,
                )
            )
        if len(job.results) == job.total_rounds:
            job.status = JobStatus.completed
            job.completed_at = now

    def _status_response(self, job: _StoredJob) -> JobStatusResponse:
        terminal = job.status.is_terminal
        execution_time_ms = None
        if terminal and job.started_at and job.completed_at:
            execution_time_ms = int((job.completed_at - job.started_at).total_seconds() * 1000)
        return JobStatusResponse(
            id=job.id,
            status=job.status,
            dataset_id=job.dataset_id,
            version_id=job.version_id,
            created_at=job.created_at,
            total_rounds=job.total_rounds,
            completed_rounds=len(job.results),
            current_round=len(job.results) + 1 if job.status == JobStatus.running else None,
            round_results=list(job.results),
            request=job.request,
            execution_time_ms=execution_time_ms,
            error_message=job.error_message,
            residual_uri=self._residual_uri(job),
            residual_size=0 if self._residual_uri(job) else None,
        )

    def _residual_uri(self, job: _StoredJob) -> Optional[str]:
        if job.status == JobStatus.completed and job.request.get("export_residual"):
            name = job.request.get("residual_output_name") or "residual"
            return f"memory://jobs/{job.id}/{name}"
        return None

    def _merged_rows(self, job: _StoredJob) -> List[Dict[str, Any]]:
        return [
            {"round_number": result.round_number, "method": result.method, "row_index": index}
            for result in job.results
            for index in range(result.sample_size)
        ]
