"""JobOrchestrator: submits multi-round sampling jobs and follows them to completion.

Responsibilities:
1. Reset all per-run state before submitting (guard, snapshot, scheduler).
2. Forward the start request to the sampling service.
3. Decode the start response once into a StartOutcome (sync vs pending).
4. Poll pending jobs until a terminal status, applying only fresh results.
5. Notify observers: started, progress, and exactly one of completed/failed.

Concurrency model: one orchestrator instance is owned by one event loop.
Every block that reads the generation and then mutates state contains no
suspension point, so the loop itself provides the mutual exclusion between
the start path, poll ticks and cancel(). Results that arrive for an older
generation (a superseded or cancelled run) are dropped.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import asyncio

from sampling_jobs.core.config import OrchestratorConfig
from sampling_jobs.core.exceptions import (
    InvalidResponseShape,
    SamplingApiException,
    SubmissionError,
)
from sampling_jobs.core.interfaces.observers import JobEventObserver
from sampling_jobs.core.interfaces.retry import RetryPort
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.interfaces.start_outcome import (
    AsyncPending,
    StartOutcome,
    SyncComplete,
    SyncFailed,
)
from sampling_jobs.core.logging_config import job_id_var
from sampling_jobs.core.managers.completion_guard import CompletionGuard
from sampling_jobs.core.managers.polling_scheduler import PollHandle, PollingScheduler
from sampling_jobs.core.managers.start_outcome_orchestrator import StartOutcomeOrchestrator
from sampling_jobs.core.models.job import (
    DEFAULT_FAILURE_MESSAGE,
    Job,
    JobStatus,
)
from sampling_jobs.core.models.sampling_request import SamplingRequest
from sampling_jobs.core.settings import logger


class JobOrchestrator:
    """Tracks a single sampling job at a time.

    Attributes:
        config: Immutable configuration (poll interval, initial delay, retries)
    """

    def __init__(
        self,
        api: SamplingApiPort,
        config: Optional[OrchestratorConfig] = None,
        retry_port: Optional[RetryPort] = None,
        observers: Optional[List[JobEventObserver]] = None,
    ) -> None:
        self._api = api
        self.config = config or OrchestratorConfig()
        self._observers: List[JobEventObserver] = list(observers or [])
        self._scheduler = PollingScheduler(
            interval=self.config.poll_interval,
            initial_delay=self.config.initial_poll_delay,
        )
        self._outcomes = StartOutcomeOrchestrator(api, self.config, retry_port)

        self._generation = 0
        self._guard: Optional[CompletionGuard] = None
        self._handle: Optional[PollHandle] = None
        self._job: Optional[Job] = None
        self._error: Optional[str] = None
        self._shutdown = False

    async def __aenter__(self) -> "JobOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()
        return False

    def add_observer(self, observer: JobEventObserver) -> None:
        """Observers added here take part from the next start() on."""
        self._observers.append(observer)

    # ----------------- Read side -----------------
    def snapshot(self) -> Optional[Job]:
        return self._job

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def job_id(self) -> Optional[str]:
        return self._job.id if self._job else None

    @property
    def status(self) -> Optional[JobStatus]:
        return self._job.status if self._job else None

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_polling(self) -> bool:
        return self._handle is not None and not self._handle.stopped and not self._handle.done

    @property
    def completed_rounds(self) -> int:
        return self._job.completed_rounds if self._job else 0

    @property
    def total_rounds(self) -> int:
        return self._job.total_rounds if self._job else 0

    @property
    def current_round(self) -> Optional[int]:
        return self._job.current_round if self._job else None

    @property
    def execution_time_ms(self) -> Optional[int]:
        return self._job.execution_time_ms if self._job else None

    # ----------------- Notifications -----------------
    async def _notify_job_started(self, job: Job) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_started(job)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_started failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    async def _notify_progress(self, job: Job) -> None:
        for observer in self._observers:
            try:
                await observer.on_progress(job, job.completed_rounds, job.total_rounds)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_progress failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    # ----------------- Lifecycle -----------------
    def _reset(self, reason: str) -> int:
        """Invalidate the previous run and prepare a fresh one (no suspension point)."""
        self._generation += 1
        self._scheduler.stop(self._handle)
        self._handle = None
        if self._guard is not None:
            self._guard.disarm(reason)
        self._guard = CompletionGuard(self._generation, self._observers)
        self._job = None
        self._error = None
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._shutdown

    async def start(
        self,
        dataset_id: int,
        version_id: int,
        request: SamplingRequest | Dict[str, Any],
    ) -> Optional[Job]:
        """Submit a job and begin tracking it, superseding any previous run.

        Returns the first applied snapshot, or None when the run was
        cancelled or superseded while the submission was in flight (or the
        service completed it synchronously but its status could not be read).
        Raises SubmissionError when the start call fails; no callback fires
        in that case.
        """
        if self._shutdown:
            raise RuntimeError("JobOrchestrator has been shut down")

        generation = self._reset("superseded")
        guard = self._guard
        logger.info(
            f"[job:start] submitting dataset_id={dataset_id} version_id={version_id} generation={generation}"
        )

        try:
            response = await self._api.start_job(dataset_id, version_id, request)
        except SamplingApiException as exc:
            raise self._submission_failed(
                generation,
                SubmissionError(
                    f"Failed to start job: {exc.response.title}",
                    dataset_id=dataset_id,
                    version_id=version_id,
                    upstream_status=exc.response.status,
                    diagnostic=exc.response.detail,
                ),
            ) from exc
        except InvalidResponseShape as exc:
            raise self._submission_failed(
                generation,
                SubmissionError(
                    "Failed to start job: malformed start response",
                    dataset_id=dataset_id,
                    version_id=version_id,
                    diagnostic=exc.detail,
                ),
            ) from exc
        except Exception as exc:
            raise self._submission_failed(
                generation, self._unexpected_submission_error(dataset_id, version_id, exc)
            ) from exc

        token = job_id_var.set(response.job_id)
        try:
            logger.debug(
                f"[job:start] start response job_id={response.job_id} status={response.status} "
                f"embedded_rounds={len(response.round_results or [])}"
            )
            try:
                outcome = await self._outcomes.derive_outcome(response)
            except InvalidResponseShape as exc:
                raise self._submission_failed(
                    generation,
                    SubmissionError(
                        "Failed to start job: malformed start response",
                        dataset_id=dataset_id,
                        version_id=version_id,
                        diagnostic=exc.detail,
                    ),
                ) from exc
            except Exception as exc:
                raise self._submission_failed(
                    generation, self._unexpected_submission_error(dataset_id, version_id, exc)
                ) from exc

            if not self._is_current(generation):
                logger.info(
                    f"[job:start] discarding outcome of superseded submission job_id={response.job_id} generation={generation}"
                )
                return None

            return await self._apply_outcome(generation, guard, outcome)
        finally:
            job_id_var.reset(token)

    @staticmethod
    def _unexpected_submission_error(dataset_id: int, version_id: int, exc: Exception) -> SubmissionError:
        logger.error(f"[job:start] unexpected error during submission error={type(exc).__name__}: {exc}")
        return SubmissionError(
            f"Failed to start job: {type(exc).__name__}",
            dataset_id=dataset_id,
            version_id=version_id,
            diagnostic=str(exc),
        )

    def _submission_failed(self, generation: int, error: SubmissionError) -> SubmissionError:
        logger.warning(
            f"[job:start] submission failed dataset_id={error.dataset_id} version_id={error.version_id} "
            f"upstream_status={error.upstream_status} diagnostic={error.diagnostic}"
        )
        if self._is_current(generation):
            self._error = error.message
            if self._guard is not None:
                self._guard.disarm("submission failed")
        return error

    async def _apply_outcome(
        self, generation: int, guard: CompletionGuard, outcome: StartOutcome
    ) -> Optional[Job]:
        if isinstance(outcome, AsyncPending):
            job = outcome.job
            self._job = job
            await self._notify_job_started(job)
            if not self._is_current(generation):
                return job
            self._handle = self._scheduler.start(
                lambda: self._poll_tick(generation, outcome.job_id),
                name=outcome.job_id,
            )
            logger.info(f"[job:start] job accepted, polling job_id={job.id} status={job.status}")
            return job

        if isinstance(outcome, SyncComplete):
            job = outcome.job
            self._job = job
            logger.info(f"[job:start] job completed synchronously job_id={job.id} rounds={job.completed_rounds}")
            await self._notify_job_started(job)
            await guard.fire_success(job)
            return job

        # SyncFailed
        self._job = outcome.job
        self._error = outcome.message
        if outcome.job is not None:
            await self._notify_job_started(outcome.job)
        await guard.fire_failure(outcome.job, outcome.message)
        return outcome.job

    def cancel(self) -> None:
        """Stop following the current job. Idempotent; fires no callback.

        The snapshot keeps the last applied state. A poll response already in
        flight is discarded when it arrives.
        """
        active = self.is_polling or (self._guard is not None and not self._guard.fired)
        self._generation += 1
        self._scheduler.stop(self._handle)
        self._handle = None
        if self._guard is not None:
            self._guard.disarm("cancelled")
        if active:
            logger.info(f"[job:cancel] stopped following job_id={self.job_id} generation={self._generation}")

    async def wait(self, timeout: Optional[float] = None) -> Job:
        """Wait for the current run to finish.

        Returns the final snapshot; raises JobFailedError, JobCancelledError,
        or asyncio.TimeoutError when `timeout` elapses first.
        """
        guard = self._guard
        if guard is None:
            raise RuntimeError("No job has been started")
        if timeout is None:
            return await guard.wait()
        return await asyncio.wait_for(guard.wait(), timeout)

    async def shutdown(self) -> None:
        self.cancel()
        self._shutdown = True
        await self._scheduler.shutdown()

    # ---------------- Polling -----------------
    async def _poll_tick(self, generation: int, job_id: str) -> bool:
        """Fetch the job status once and apply it if still current.

        Returns True when polling should stop (terminal, superseded or cancelled).
        Transport and shape errors are logged and retried on the next tick.
        """
        if not self._is_current(generation):
            return True

        try:
            status = await self._api.get_job_status(job_id)
            if status.id != job_id:
                raise InvalidResponseShape(
                    "get_job_status", f"status for job {status.id} returned while polling {job_id}"
                )
            job = Job.from_status_response(status)
        except SamplingApiException as exc:
            logger.warning(
                f"[job:poll] transport error, retrying next tick job_id={job_id} "
                f"status={exc.response.status} title={exc.response.title}"
            )
            return False
        except InvalidResponseShape as exc:
            logger.error(f"[job:poll] invalid status response job_id={job_id} detail={exc.detail}")
            return False
        except ValueError as exc:
            logger.error(f"[job:poll] status response violates job invariants job_id={job_id} error={exc}")
            return False

        if not self._is_current(generation):
            logger.debug(f"[job:poll] discarding stale poll result job_id={job_id} generation={generation}")
            return True

        return await self._apply_poll_result(job)

    async def _apply_poll_result(self, job: Job) -> bool:
        """Apply a fresh status snapshot. Caller guarantees the generation is current."""
        previous = self._job
        guard = self._guard
        if previous is not None:
            if job.status.rank < previous.status.rank:
                logger.debug(
                    f"[job:poll] ignoring out-of-order status job_id={job.id} "
                    f"current={previous.status} received={job.status}"
                )
                return False
            if job.completed_rounds < previous.completed_rounds:
                logger.debug(
                    f"[job:poll] ignoring out-of-order rounds job_id={job.id} "
                    f"current={previous.completed_rounds} received={job.completed_rounds}"
                )
                return False

        self._job = job
        if job.status == JobStatus.failed:
            self._error = job.error_message or DEFAULT_FAILURE_MESSAGE
        if job.is_terminal:
            self._scheduler.stop(self._handle)

        logger.debug(
            f"[job:poll] applied status={job.status} rounds={job.completed_rounds}/{job.total_rounds} "
            f"current_round={job.current_round} job_id={job.id}"
        )

        if previous is None or job.completed_rounds != previous.completed_rounds:
            await self._notify_progress(job)

        if not job.is_terminal:
            return False

        if guard is not None:
            if job.status == JobStatus.completed:
                await guard.fire_success(job)
            else:
                await guard.fire_failure(job, job.error_message or DEFAULT_FAILURE_MESSAGE)
        return True
