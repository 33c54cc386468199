"""Protocol and result types for interpreting the start response.

The start operation answers in different shapes: a pending handle, a
synchronous completion with or without embedded round results, or an
immediate failure. The shape is decoded once into a StartOutcome so the
orchestrator never branches on optional response fields later on.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union

from sampling_jobs.core.models.job import Job, StartJobResponse


@dataclass(frozen=True)
class SyncComplete:
    """The service finished the job while handling the start call."""
    job: Job


@dataclass(frozen=True)
class SyncFailed:
    """The job failed before polling could start.

    `job` is None when no trustworthy snapshot exists (e.g. the status
    fetch after a synchronous completion failed).
    """
    job_id: str
    message: str
    job: Optional[Job] = None
    diagnostic: Optional[str] = None


@dataclass(frozen=True)
class AsyncPending:
    """The job was accepted and must be polled."""
    job_id: str
    job: Job


StartOutcome = Union[SyncComplete, SyncFailed, AsyncPending]


class StartOutcomeStrategy(Protocol):
    """Protocol implemented by each start response interpretation.

    - EmbeddedResultsStrategy: completed, round results embedded
    - StatusFollowupStrategy: completed, summary only -> fetch status
    - ImmediateFailureStrategy: failed
    - PendingStrategy: pending or running
    """

    def can_handle(self, response: StartJobResponse) -> bool:
        """Check if this strategy can handle the given start response."""
        ...

    async def derive(self, response: StartJobResponse) -> StartOutcome:
        """Derive the outcome from the start response."""
        ...
