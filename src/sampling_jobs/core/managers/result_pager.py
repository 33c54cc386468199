"""ResultPager: paginated access to the merged sample of a completed job.

Nothing is cached and no per-call state is kept on the instance, so one
pager can serve concurrent callers for the same or different jobs.
"""

from typing import AsyncIterator, Optional

from sampling_jobs.core.config import ResultPagerConfig
from sampling_jobs.core.exceptions import (
    InvalidResponseShape,
    JobNotReadyError,
    SamplingApiException,
)
from sampling_jobs.core.interfaces.retry import RetryPort
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.managers.retry_policy import call_with_retry
from sampling_jobs.core.models.job import JobStatus
from sampling_jobs.core.models.merged_sample import MergedSamplePage
from sampling_jobs.core.settings import logger

# Statuses the service answers with when the merged sample does not exist yet
NOT_READY_HTTP_STATUSES = {400, 404, 409, 425}


class ResultPager:
    def __init__(
        self,
        api: SamplingApiPort,
        config: Optional[ResultPagerConfig] = None,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._api = api
        self.config = config or ResultPagerConfig()
        self._retry = retry_port

    async def get_page(
        self, job_id: str, page: int = 1, page_size: Optional[int] = None
    ) -> MergedSamplePage:
        """Fetch one page of merged rows.

        Raises:
            ValueError: page < 1 or page_size outside 1..max_page_size
            JobNotReadyError: the job has not completed yet
            InvalidResponseShape: rows or pagination missing from the body
            SamplingApiException: any other transport/HTTP failure
        """
        if page_size is None:
            page_size = self.config.default_page_size
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= self.config.max_page_size:
            raise ValueError(
                f"page_size must be between 1 and {self.config.max_page_size}, got {page_size}"
            )

        logger.debug(f"[pager:get] job_id={job_id} page={page} page_size={page_size}")
        try:
            result = await call_with_retry(
                self._retry,
                lambda: self._api.get_merged_sample(job_id, page, page_size),
                attempts=self.config.fetch_max_retries,
                wait_initial=self.config.retry_base_wait,
                wait_max=self.config.retry_max_wait,
                label="pager:get",
            )
        except SamplingApiException as exc:
            if exc.response.status in NOT_READY_HTTP_STATUSES:
                await self._raise_if_not_ready(job_id, exc)
            raise

        return self._normalize(job_id, page, page_size, result)

    async def iter_pages(
        self, job_id: str, page_size: Optional[int] = None
    ) -> AsyncIterator[MergedSamplePage]:
        """Yield pages starting at 1 until the service reports no more rows."""
        page = 1
        while True:
            result = await self.get_page(job_id, page, page_size)
            yield result
            if not result.has_more:
                return
            page += 1

    async def _raise_if_not_ready(self, job_id: str, exc: SamplingApiException) -> None:
        """Turn a rejected request into JobNotReadyError when the job is still open."""
        try:
            status = await self._api.get_job_status(job_id)
        except (SamplingApiException, InvalidResponseShape) as probe_exc:
            logger.debug(f"[pager:probe] status probe failed job_id={job_id} error={probe_exc}")
            return
        if status.status != JobStatus.completed:
            logger.info(f"[pager:probe] merged sample requested early job_id={job_id} status={status.status}")
            raise JobNotReadyError(job_id, status.status, diagnostic=exc.response.detail) from exc

    def _normalize(
        self, job_id: str, page: int, page_size: int, result: MergedSamplePage
    ) -> MergedSamplePage:
        pagination = result.pagination
        if pagination.page != page or pagination.page_size != page_size:
            logger.warning(
                f"[pager:get] service answered page={pagination.page} page_size={pagination.page_size} "
                f"for page={page} page_size={page_size} job_id={job_id}"
            )
        normalized = pagination.normalized()
        if pagination.has_more is not None and pagination.has_more != normalized.has_more:
            logger.warning(
                f"[pager:get] has_more={pagination.has_more} disagrees with total={pagination.total}; "
                f"using {normalized.has_more} job_id={job_id}"
            )
        return result.model_copy(update={"pagination": normalized})
