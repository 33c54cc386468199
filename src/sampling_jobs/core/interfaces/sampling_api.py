"""Port for the remote sampling service.

The orchestration core only ever needs three operations. Adapters own the
transport (HTTP, in-process fake) and are responsible for turning bodies
into the pydantic models below, raising InvalidResponseShape when a body
cannot be parsed and SamplingApiException for transport/HTTP failures.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from sampling_jobs.core.models.job import JobStatusResponse, StartJobResponse
from sampling_jobs.core.models.merged_sample import MergedSamplePage
from sampling_jobs.core.models.sampling_request import SamplingRequest


class SamplingApiPort(ABC):
    @abstractmethod
    async def start_job(
        self,
        dataset_id: int,
        version_id: int,
        request: SamplingRequest | Dict[str, Any],
    ) -> StartJobResponse:
        """Submit a multi-round sampling job for a dataset version."""
        pass

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        """Return the canonical status snapshot of a job."""
        pass

    @abstractmethod
    async def get_merged_sample(self, job_id: str, page: int, page_size: int) -> MergedSamplePage:
        """Return one page of the merged sample of a completed job."""
        pass
