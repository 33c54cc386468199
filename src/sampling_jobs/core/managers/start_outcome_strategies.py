"""Concrete interpretations of the start response.

Four strategy classes cover the shapes the service answers with:
1. EmbeddedResultsStrategy: completed, round results embedded in the body
2. StatusFollowupStrategy: completed, summary only; one status fetch follows
3. ImmediateFailureStrategy: failed at submission time
4. PendingStrategy: pending or running; the job must be polled
"""

from typing import Optional

from sampling_jobs.core.config import OrchestratorConfig
from sampling_jobs.core.exceptions import (
    InvalidResponseShape,
    SamplingApiException,
    StatusFetchAfterCompletionError,
)
from sampling_jobs.core.interfaces.retry import RetryPort
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.interfaces.start_outcome import (
    AsyncPending,
    StartOutcome,
    SyncComplete,
    SyncFailed,
)
from sampling_jobs.core.managers.retry_policy import call_with_retry
from sampling_jobs.core.models.job import (
    DEFAULT_FAILURE_MESSAGE,
    Job,
    JobStatus,
    StartJobResponse,
)
from sampling_jobs.core.settings import logger


def snapshot_from_start(response: StartJobResponse) -> Job:
    try:
        return Job.from_start_response(response)
    except ValueError as exc:
        raise InvalidResponseShape("start_job", str(exc)) from exc


class EmbeddedResultsStrategy:
    """Synchronous completion whose body already carries the round results."""

    def can_handle(self, response: StartJobResponse) -> bool:
        return response.status == JobStatus.completed and response.has_round_results

    async def derive(self, response: StartJobResponse) -> StartOutcome:
        job = snapshot_from_start(response)
        logger.debug(
            f"[strategy:embedded] sync completion with {job.completed_rounds} embedded rounds job_id={job.id}"
        )
        return SyncComplete(job=job)


class StatusFollowupStrategy:
    """Synchronous completion reported as a summary only.

    The canonical snapshot comes from one extra status request. If that
    request fails the outcome is a failure carrying the fetch error; no
    snapshot is reconstructed from the partial start body.
    """

    def __init__(
        self,
        api: SamplingApiPort,
        config: OrchestratorConfig,
        retry_port: Optional[RetryPort] = None,
    ):
        self._api = api
        self._config = config
        self._retry = retry_port

    def can_handle(self, response: StartJobResponse) -> bool:
        return response.status == JobStatus.completed and not response.has_round_results

    async def derive(self, response: StartJobResponse) -> StartOutcome:
        job_id = response.job_id
        logger.debug(f"[strategy:followup] sync completion without round results; fetching status job_id={job_id}")

        try:
            status = await call_with_retry(
                self._retry,
                lambda: self._api.get_job_status(job_id),
                attempts=self._config.status_fetch_retries,
                wait_initial=self._config.retry_base_wait,
                wait_max=self._config.retry_max_wait,
                label="strategy:followup",
            )
            job = Job.from_status_response(status)
        except (SamplingApiException, InvalidResponseShape, ValueError) as exc:
            error = StatusFetchAfterCompletionError(job_id, diagnostic=str(exc))
            logger.warning(f"[strategy:followup] {error.message} error={exc}")
            return SyncFailed(job_id=job_id, message=error.message, diagnostic=error.diagnostic)

        if job.status == JobStatus.completed:
            return SyncComplete(job=job)
        if job.status == JobStatus.failed:
            return SyncFailed(job_id=job_id, message=job.error_message or DEFAULT_FAILURE_MESSAGE, job=job)

        # Service said completed but the canonical status disagrees; trust the status endpoint
        logger.warning(
            f"[strategy:followup] status endpoint reports {job.status} after sync completion; polling job_id={job_id}"
        )
        return AsyncPending(job_id=job_id, job=job)


class ImmediateFailureStrategy:
    def can_handle(self, response: StartJobResponse) -> bool:
        return response.status == JobStatus.failed

    async def derive(self, response: StartJobResponse) -> StartOutcome:
        try:
            job = Job.from_start_response(response)
        except ValueError:
            job = Job(
                id=response.job_id,
                status=JobStatus.failed,
                total_rounds=response.total_rounds or 0,
                error_message=response.error_message or DEFAULT_FAILURE_MESSAGE,
                created_at=response.created_at,
            )
        logger.debug(f"[strategy:failed] job failed at submission job_id={job.id} message={job.error_message}")
        return SyncFailed(job_id=job.id, message=job.error_message or DEFAULT_FAILURE_MESSAGE, job=job)


class PendingStrategy:
    """Pending or running: the job is tracked and polled.

    Counts in a pending body are advisory; if they do not form a valid
    snapshot a bare one (id, status, total rounds) is used until the first
    poll lands.
    """

    def can_handle(self, response: StartJobResponse) -> bool:
        return not response.status.is_terminal

    async def derive(self, response: StartJobResponse) -> StartOutcome:
        try:
            job = Job.from_start_response(response)
        except ValueError as exc:
            logger.debug(
                f"[strategy:pending] partial counts in start body ignored job_id={response.job_id} error={exc}"
            )
            job = Job(
                id=response.job_id,
                status=response.status,
                total_rounds=response.total_rounds or 0,
                created_at=response.created_at,
            )
        return AsyncPending(job_id=job.id, job=job)
