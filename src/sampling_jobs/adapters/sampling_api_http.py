"""SamplingApiPort over HTTP.

Paths follow the sampling service's multi-round routes:
    POST {base}/sampling/{dataset_id}/{version_id}/multi-round/run
    GET  {base}/sampling/multi-round/jobs/{job_id}
    GET  {base}/sampling/multi-round/jobs/{job_id}/merged-sample
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, SecretStr, ValidationError

from sampling_jobs.core.exceptions import InvalidResponseShape, SamplingApiException
from sampling_jobs.core.interfaces.http_client import HttpClientPort
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.models.api_error import ApiErrorResponse
from sampling_jobs.core.models.job import JobStatusResponse, StartJobResponse
from sampling_jobs.core.models.merged_sample import MergedSamplePage
from sampling_jobs.core.models.sampling_request import SamplingRequest, request_payload
from sampling_jobs.core.settings import logger

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: Type[ModelT], body: Any, operation: str) -> ModelT:
    if not isinstance(body, dict):
        raise InvalidResponseShape(operation, f"expected a JSON object, got {type(body).__name__}")
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidResponseShape(operation, errors) from exc


class HttpSamplingApiAdapter(SamplingApiPort):
    def __init__(
        self,
        http_client: HttpClientPort,
        base_url: str,
        token: SecretStr | str | None = None,
        timeout: Optional[float] = None,
    ):
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        if isinstance(token, SecretStr):
            token = token.get_secret_value()
        self._token = token or None
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def start_job(
        self,
        dataset_id: int,
        version_id: int,
        request: SamplingRequest | Dict[str, Any],
    ) -> StartJobResponse:
        url = f"{self._base_url}/sampling/{dataset_id}/{version_id}/multi-round/run"
        payload = request_payload(request)
        logger.debug(f"[api:start] POST {url} rounds={len(payload.get('rounds', []))}")

        response = await self._http.post(url, json=payload, timeout=self._timeout, headers=self._headers())
        status = response["status"]
        body = response["body"]

        if status >= 400:
            detail = _detail(body) or f"Start request rejected with HTTP {status}"
            logger.warning(f"[api:start] rejected status={status} detail={detail}")
            raise SamplingApiException(
                ApiErrorResponse(
                    title="Job Submission Rejected",
                    status=status,
                    detail=detail,
                    instance=url,
                )
            )

        return _parse(StartJobResponse, body, "start_job")

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        url = f"{self._base_url}/sampling/multi-round/jobs/{job_id}"
        body = await self._http.get(url, timeout=self._timeout, headers=self._headers())
        return _parse(JobStatusResponse, body, "get_job_status")

    async def get_merged_sample(self, job_id: str, page: int, page_size: int) -> MergedSamplePage:
        url = f"{self._base_url}/sampling/multi-round/jobs/{job_id}/merged-sample"
        body = await self._http.get(
            url,
            params={"page": page, "page_size": page_size},
            timeout=self._timeout,
            headers=self._headers(),
        )
        return _parse(MergedSamplePage, body, "get_merged_sample")


def _detail(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("error")
        return str(detail) if detail else None
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return None
