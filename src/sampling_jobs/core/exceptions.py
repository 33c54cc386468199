from typing import Optional
from sampling_jobs.core.models.api_error import ApiErrorResponse
from sampling_jobs.core.models.job import JobStatus


class SamplingApiException(Exception):
    """Transport or HTTP level failure talking to the sampling service."""
    def __init__(self, response: ApiErrorResponse):
        self.response = response
        super().__init__(f"{response.status} {response.title}: {response.detail}")


class TransientApiError(SamplingApiException):
    """Wrapper for transient upstream errors that should be retried.

    Used to distinguish retryable errors (connection, timeout, 502, 503, 504)
    from non-retryable client errors (4xx) in retry logic.
    """

    pass


class InvalidResponseShape(Exception):
    """A response body is missing required fields or violates job invariants.

    Kept apart from SamplingApiException so a malformed body is never mistaken
    for an empty result or a business failure.
    """
    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Invalid response shape from {operation}: {detail}")


def is_transient_error(exc: Exception) -> bool:
    """Check if exception represents a transient error worth retrying.

    Transient errors include connection errors, timeouts and 502/503/504.
    Client errors (4xx) and malformed responses fail immediately.
    """
    if isinstance(exc, InvalidResponseShape):
        return False
    if isinstance(exc, SamplingApiException):
        if exc.response.status in (502, 503, 504):
            return True
        if 400 <= exc.response.status < 500:
            return False
    return True


# Domain-specific job exceptions

class SamplingJobError(Exception):
    """Base exception for sampling job failures.

    Attributes:
        message: Human-readable error description
        diagnostic: Technical diagnostic information for debugging
        job_id: Optional job identifier
    """
    def __init__(
        self,
        message: str,
        diagnostic: Optional[str] = None,
        job_id: Optional[str] = None
    ):
        self.message = message
        self.diagnostic = diagnostic
        self.job_id = job_id
        super().__init__(message)


class SubmissionError(SamplingJobError):
    """Raised when the start call itself fails; no job is tracked.

    Attributes:
        dataset_id: Dataset the job was submitted for
        version_id: Dataset version the job was submitted for
        upstream_status: HTTP status code from the service (if applicable)
    """
    def __init__(
        self,
        message: str,
        dataset_id: int,
        version_id: int,
        upstream_status: Optional[int] = None,
        diagnostic: Optional[str] = None,
    ):
        self.dataset_id = dataset_id
        self.version_id = version_id
        self.upstream_status = upstream_status
        super().__init__(message=message, diagnostic=diagnostic)


class JobFailedError(SamplingJobError):
    """The service reported the job as failed."""
    pass


class JobCancelledError(SamplingJobError):
    """The run was cancelled or superseded before a terminal state was applied."""
    pass


class JobNotReadyError(SamplingJobError):
    """Merged results were requested for a job that has not completed.

    Attributes:
        status: Status observed when the request was rejected
    """
    def __init__(self, job_id: str, status: JobStatus, diagnostic: Optional[str] = None):
        self.status = status
        message = f"Job {job_id} is not completed (status: {status})"
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)


class StatusFetchAfterCompletionError(SamplingJobError):
    """The service finished the job synchronously but its status could not be read.

    The start response alone is only a summary, so no snapshot is guessed
    from it.
    """
    def __init__(self, job_id: str, diagnostic: Optional[str] = None):
        message = f"Status fetch failed after synchronous completion of job {job_id}"
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)
