from pydantic import BaseModel, Field, AliasChoices, field_validator, model_validator
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from enum import StrEnum


class JobStatus(StrEnum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.completed, JobStatus.failed)

    @property
    def rank(self) -> int:
        """Position in the forward-only lattice pending < running < terminal."""
        if self is JobStatus.pending:
            return 0
        if self is JobStatus.running:
            return 1
        return 2


def _coerce_id(value: Any) -> Any:
    # run ids come back as integers from some endpoints
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class RoundSummary(BaseModel):
    model_config = {"extra": "allow"}

    total_rows: Optional[int] = None
    total_columns: Optional[int] = None
    column_types: Optional[Dict[str, str]] = None
    memory_usage_mb: Optional[float] = None
    null_counts: Optional[Dict[str, int]] = None


class RoundResult(BaseModel):
    model_config = {"frozen": True}

    round_number: int = Field(..., ge=1)
    method: str
    sample_size: int = Field(..., ge=0)
    output_uri: Optional[str] = None
    preview: Optional[List[Dict[str, Any]]] = None
    summary: Optional[RoundSummary] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class StartJobResponse(BaseModel):
    """Body returned by the start operation.

    Pending submissions carry only the id and status. Jobs the service ran
    synchronously may also embed counts and round results, but the body can
    still be a summary without them.
    """

    job_id: str = Field(..., validation_alias=AliasChoices("run_id", "job_id", "jobId", "id"))
    status: JobStatus
    message: Optional[str] = None
    total_rounds: Optional[int] = Field(None, ge=0)
    completed_rounds: Optional[int] = Field(None, ge=0)
    current_round: Optional[int] = None
    round_results: Optional[List[RoundResult]] = None
    residual_uri: Optional[str] = None
    residual_size: Optional[int] = None
    residual_summary: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def coerce_job_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @property
    def has_round_results(self) -> bool:
        return bool(self.round_results)


class JobStatusResponse(BaseModel):
    id: str
    status: JobStatus
    dataset_id: Optional[int] = None
    version_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    total_rounds: int = Field(..., ge=0)
    completed_rounds: int = Field(..., ge=0)
    current_round: Optional[int] = None
    round_results: List[RoundResult] = Field(default_factory=list)
    request: Optional[Dict[str, Any]] = None
    execution_time_ms: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    residual_uri: Optional[str] = None
    residual_size: Optional[int] = None
    residual_summary: Optional[Dict[str, Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class Job(BaseModel):
    """Immutable snapshot of one sampling run as last observed.

    Notes:
    - Only the orchestrator builds snapshots; every update produces a new one.
    - Fields that only make sense for a given status are dropped by the
      `from_*` factories instead of being carried over (e.g. `current_round`
      outside `running`, residual metadata outside `completed`).
    - `completed_rounds` always equals `len(round_results)` and never exceeds
      `total_rounds`; violating responses fail validation.
    """

    model_config = {"frozen": True}

    id: str
    status: JobStatus
    total_rounds: int = Field(0, ge=0)
    completed_rounds: int = Field(0, ge=0)
    current_round: Optional[int] = None
    round_results: Tuple[RoundResult, ...] = ()
    execution_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    residual_uri: Optional[str] = None
    residual_size: Optional[int] = None
    residual_summary: Optional[Dict[str, Any]] = None

    # Informational only; the start response does not always carry them
    dataset_id: Optional[int] = None
    version_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_invariants(self) -> "Job":
        if self.completed_rounds > self.total_rounds:
            raise ValueError(
                f"completed_rounds={self.completed_rounds} exceeds total_rounds={self.total_rounds}"
            )
        if len(self.round_results) != self.completed_rounds:
            raise ValueError(
                f"round_results has {len(self.round_results)} entries but completed_rounds={self.completed_rounds}"
            )
        if self.current_round is not None and self.status != JobStatus.running:
            raise ValueError("current_round is only allowed while running")
        if self.execution_time_ms is not None and not self.status.is_terminal:
            raise ValueError("execution_time_ms is only allowed for terminal jobs")
        if self.error_message is not None and self.status != JobStatus.failed:
            raise ValueError("error_message is only allowed for failed jobs")
        if self.status != JobStatus.completed and (
            self.residual_uri is not None
            or self.residual_size is not None
            or self.residual_summary is not None
        ):
            raise ValueError("residual metadata is only allowed for completed jobs")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress(self) -> float:
        """Fraction of rounds completed; jobs without a round count report 0 or 1."""
        if not self.total_rounds:
            return 1.0 if self.status == JobStatus.completed else 0.0
        return self.completed_rounds / self.total_rounds

    @classmethod
    def from_status_response(cls, resp: JobStatusResponse) -> "Job":
        status = resp.status
        completed = status == JobStatus.completed
        return cls(
            id=resp.id,
            status=status,
            total_rounds=resp.total_rounds,
            completed_rounds=resp.completed_rounds,
            current_round=resp.current_round if status == JobStatus.running else None,
            round_results=tuple(resp.round_results),
            execution_time_ms=resp.execution_time_ms if status.is_terminal else None,
            error_message=_failure_message(status, resp.error_message),
            residual_uri=resp.residual_uri if completed else None,
            residual_size=resp.residual_size if completed else None,
            residual_summary=resp.residual_summary if completed else None,
            dataset_id=resp.dataset_id,
            version_id=resp.version_id,
            created_at=resp.created_at,
        )

    @classmethod
    def from_start_response(cls, resp: StartJobResponse) -> "Job":
        status = resp.status
        completed = status == JobStatus.completed
        results = tuple(resp.round_results or ())
        completed_rounds = (
            resp.completed_rounds if resp.completed_rounds is not None else len(results)
        )
        total_rounds = resp.total_rounds if resp.total_rounds is not None else completed_rounds
        execution_time_ms = None
        if status.is_terminal and resp.started_at and resp.completed_at:
            delta = resp.completed_at - resp.started_at
            execution_time_ms = max(0, int(delta.total_seconds() * 1000))
        return cls(
            id=resp.job_id,
            status=status,
            total_rounds=total_rounds,
            completed_rounds=completed_rounds,
            current_round=resp.current_round if status == JobStatus.running else None,
            round_results=results,
            execution_time_ms=execution_time_ms,
            error_message=_failure_message(status, resp.error_message),
            residual_uri=resp.residual_uri if completed else None,
            residual_size=resp.residual_size if completed else None,
            residual_summary=resp.residual_summary if completed else None,
            created_at=resp.created_at,
        )


DEFAULT_FAILURE_MESSAGE = "Job failed"


def _failure_message(status: JobStatus, message: Optional[str]) -> Optional[str]:
    if status != JobStatus.failed:
        return None
    return message or DEFAULT_FAILURE_MESSAGE
