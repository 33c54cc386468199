"""One-shot completion latch for a single job run.

Completion can be detected from two independent paths: the start response
of a job the service ran synchronously, and a poll tick of a job that was
briefly pending. Both go through the run's guard, and only the first
`fire_*` call notifies observers.

The latch is checked and set without a suspension point in between, so
two coroutines racing on the same event loop cannot both win.
"""

import asyncio
from typing import Optional, Sequence

from sampling_jobs.core.exceptions import JobCancelledError, JobFailedError
from sampling_jobs.core.interfaces.observers import JobEventObserver
from sampling_jobs.core.models.job import Job
from sampling_jobs.core.settings import logger


class CompletionGuard:
    """Single-fire latch bound to one job run.

    Attributes:
        generation: Orchestrator generation this guard belongs to
    """

    def __init__(self, generation: int, observers: Sequence[JobEventObserver] = ()):
        self.generation = generation
        self._observers = list(observers)
        self._fired = False
        self._outcome: Optional[str] = None  # "completed" | "failed" | "cancelled"
        self._job: Optional[Job] = None
        self._message: Optional[str] = None
        self._done = asyncio.Event()

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def outcome(self) -> Optional[str]:
        return self._outcome

    def _latch(self, outcome: str, job: Optional[Job], message: Optional[str]) -> bool:
        if self._fired:
            logger.debug(
                f"[guard:fire] ignored {outcome}; already latched as {self._outcome} generation={self.generation}"
            )
            return False
        self._fired = True
        self._outcome = outcome
        self._job = job
        self._message = message
        self._done.set()
        return True

    async def fire_success(self, job: Job) -> bool:
        """Notify completion once. Returns False if the guard had already fired."""
        if not self._latch("completed", job, None):
            return False
        logger.info(f"[guard:fire] job completed job_id={job.id} rounds={job.completed_rounds}/{job.total_rounds}")
        for observer in self._observers:
            try:
                await observer.on_job_completed(job)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_completed failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )
        return True

    async def fire_failure(self, job: Optional[Job], message: str) -> bool:
        """Notify failure once. Returns False if the guard had already fired."""
        if not self._latch("failed", job, message):
            return False
        job_id = job.id if job else None
        logger.warning(f"[guard:fire] job failed job_id={job_id} message={message}")
        for observer in self._observers:
            try:
                await observer.on_job_failed(job, message)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_failed failed observer={type(observer).__name__} "
                    f"job_id={job_id} error={exc}"
                )
        return True

    def disarm(self, reason: str = "cancelled") -> bool:
        """Latch without notifying anyone (cancel or supersession)."""
        if not self._latch("cancelled", None, reason):
            return False
        logger.debug(f"[guard:disarm] reason={reason} generation={self.generation}")
        return True

    async def wait(self) -> Job:
        """Wait for the outcome of this run.

        Returns the final snapshot on success. Raises JobFailedError when the
        job failed and JobCancelledError when the guard was disarmed.
        """
        await self._done.wait()
        if self._outcome == "completed" and self._job is not None:
            return self._job
        job_id = self._job.id if self._job else None
        if self._outcome == "failed":
            raise JobFailedError(self._message or "Job failed", job_id=job_id)
        raise JobCancelledError(f"Job run {self._message or 'cancelled'}", job_id=job_id)
