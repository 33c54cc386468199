from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class SamplingRound(BaseModel):
    model_config = {"extra": "allow"}

    round_number: int = Field(..., ge=1)
    method: str  # random, stratified, systematic, cluster, custom
    parameters: Dict[str, Any] = Field(default_factory=dict)
    output_name: str
    filters: Optional[Dict[str, Any]] = None
    selection: Optional[Dict[str, Any]] = None


class SamplingRequest(BaseModel):
    """Round definitions for one multi-round run.

    The orchestrator never interprets the rounds; `to_payload` returns exactly
    what the caller supplied (unknown keys included) so the service receives
    the request verbatim.
    """

    model_config = {"extra": "allow"}

    rounds: List[SamplingRound] = Field(..., min_length=1)
    export_residual: bool = False
    residual_output_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


def request_payload(request: "SamplingRequest | Dict[str, Any]") -> Dict[str, Any]:
    """Accept either a model or an already-built dict."""
    if isinstance(request, SamplingRequest):
        return request.to_payload()
    if isinstance(request, dict):
        return request
    raise TypeError(f"Unsupported sampling request type: {type(request).__name__}")
