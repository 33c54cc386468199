"""Concrete observer implementations for job lifecycle events.

This module provides:
- CallbackObserver: adapts plain callables (sync or async) to the protocol
- ProgressLogObserver: logs progress and outcomes through a module logger
"""

import inspect
import logging
from typing import Any, Callable, Optional

from sampling_jobs.core.models.job import Job


logger = logging.getLogger(__name__)


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class CallbackObserver:
    """Forwards lifecycle events to user supplied callables.

    Signatures mirror what a UI typically needs:
        on_complete(job_id, job), on_failed(message),
        on_progress(completed_rounds, total_rounds), on_started(job)
    Each callable may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        on_complete: Optional[Callable[[str, Job], Any]] = None,
        on_failed: Optional[Callable[[str], Any]] = None,
        on_progress: Optional[Callable[[int, int], Any]] = None,
        on_started: Optional[Callable[[Job], Any]] = None,
    ):
        self._on_complete = on_complete
        self._on_failed = on_failed
        self._on_progress = on_progress
        self._on_started = on_started

    async def on_job_started(self, job: Job) -> None:
        await _call(self._on_started, job)

    async def on_progress(self, job: Job, completed_rounds: int, total_rounds: int) -> None:
        await _call(self._on_progress, completed_rounds, total_rounds)

    async def on_job_completed(self, job: Job) -> None:
        await _call(self._on_complete, job.id, job)

    async def on_job_failed(self, job: Optional[Job], message: str) -> None:
        await _call(self._on_failed, message)


class ProgressLogObserver:
    """Logs job progress for command line and batch usage."""

    async def on_job_started(self, job: Job) -> None:
        logger.info(f"[observer:log] job started job_id={job.id} status={job.status}")

    async def on_progress(self, job: Job, completed_rounds: int, total_rounds: int) -> None:
        logger.info(
            f"[observer:log] round {completed_rounds}/{total_rounds} done "
            f"({job.progress:.0%}) job_id={job.id} current_round={job.current_round}"
        )

    async def on_job_completed(self, job: Job) -> None:
        logger.info(
            f"[observer:log] job completed job_id={job.id} rounds={job.completed_rounds} "
            f"execution_time_ms={job.execution_time_ms} residual_size={job.residual_size}"
        )

    async def on_job_failed(self, job: Optional[Job], message: str) -> None:
        logger.warning(f"[observer:log] job failed job_id={job.id if job else None} message={message}")
