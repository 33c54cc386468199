"""Observer protocols for sampling job lifecycle events.

Observers decouple side effects (UI updates, logging, test probes) from the
orchestration logic. Completion and failure notifications are dispatched
through the run's CompletionGuard, so each observer sees at most one of
them per run.
"""

from typing import Protocol
from sampling_jobs.core.models.job import Job


class JobEventObserver(Protocol):
    """Observer protocol for job lifecycle events.

    Implementations can react to:
    - on_job_started: after the start response was accepted and a snapshot applied
    - on_progress: after a poll changed the number of completed rounds
    - on_job_completed: once, when the job reached `completed`
    - on_job_failed: once, when the job reached `failed`

    Observers are awaited on the orchestrator's event loop; they should not
    block it.
    """

    async def on_job_started(self, job: Job) -> None:
        """Called after submission with the first applied snapshot.

        Args:
            job: Snapshot built from the start response (or the follow-up status)
        """
        ...

    async def on_progress(self, job: Job, completed_rounds: int, total_rounds: int) -> None:
        """Called when a poll observed a different completed round count.

        Args:
            job: Snapshot after the update
            completed_rounds: Rounds finished so far
            total_rounds: Rounds requested
        """
        ...

    async def on_job_completed(self, job: Job) -> None:
        """Called once after the job completed.

        Args:
            job: Final snapshot
        """
        ...

    async def on_job_failed(self, job: Job | None, message: str) -> None:
        """Called once after the job failed.

        Args:
            job: Last snapshot (None when no snapshot could be built)
            message: Error message reported by the service
        """
        ...
