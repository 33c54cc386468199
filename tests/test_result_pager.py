"""Tests for ResultPager: page validation, normalization, readiness and retries."""

import pytest
from unittest.mock import AsyncMock

from sampling_jobs.adapters.retry_tenacity import TenacityRetryAdapter
from sampling_jobs.adapters.sampling_api_inmemory import InMemorySamplingApi
from sampling_jobs.core.config import ResultPagerConfig
from sampling_jobs.core.exceptions import (
    InvalidResponseShape,
    JobNotReadyError,
    SamplingApiException,
)
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.managers.result_pager import ResultPager
from sampling_jobs.core.models.api_error import ApiErrorResponse
from sampling_jobs.core.models.job import JobStatus, JobStatusResponse
from sampling_jobs.core.models.merged_sample import MergedSamplePage, Pagination


REQUEST = {
    "rounds": [
        {"round_number": i, "method": "random", "output_name": f"r{i}"} for i in range(1, 4)
    ]
}


@pytest.fixture
def pager_config():
    return ResultPagerConfig(default_page_size=10, max_page_size=50, retry_base_wait=0.01, retry_max_wait=0.02)


@pytest.fixture
async def completed_api():
    """In-memory service holding one completed job with 3 x 10 rows."""
    api = InMemorySamplingApi(sync_threshold=5, rows_per_round=10)
    await api.start_job(1, 1, REQUEST)
    return api


@pytest.fixture
def mock_api():
    return AsyncMock(spec=SamplingApiPort)


def page(page_no=1, page_size=10, total=20, has_more=None, rows=None):
    return MergedSamplePage(
        rows=rows if rows is not None else [{"n": i} for i in range(page_size)],
        pagination=Pagination(page=page_no, page_size=page_size, total=total, has_more=has_more),
    )


def api_error(status):
    return SamplingApiException(ApiErrorResponse(title="Upstream", status=status, detail="upstream said no"))


class TestPaging:
    @pytest.mark.asyncio
    async def test_pages_through_merged_rows(self, completed_api, pager_config):
        pager = ResultPager(completed_api, pager_config)

        first = await pager.get_page("1", 1, 12)
        assert len(first.rows) == 12
        assert first.has_more
        assert first.pagination.total == 30
        assert first.pagination.total_pages == 3

        last = await pager.get_page("1", 3, 12)
        assert len(last.rows) == 6
        assert not last.has_more

    @pytest.mark.asyncio
    async def test_default_page_size(self, completed_api, pager_config):
        result = await ResultPager(completed_api, pager_config).get_page("1")
        assert result.pagination.page_size == 10
        assert len(result.rows) == 10

    @pytest.mark.asyncio
    async def test_iter_pages_collects_all_rows(self, completed_api, pager_config):
        pager = ResultPager(completed_api, pager_config)
        rows = []
        async for result in pager.iter_pages("1", page_size=7):
            rows.extend(result.rows)
        assert len(rows) == 30

    @pytest.mark.asyncio
    async def test_page_beyond_end_is_empty(self, completed_api, pager_config):
        result = await ResultPager(completed_api, pager_config).get_page("1", 9, 10)
        assert result.rows == []
        assert not result.has_more

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_no,page_size", [(0, 10), (-1, 10), (1, 0), (1, 51)])
    async def test_invalid_arguments(self, mock_api, pager_config, page_no, page_size):
        pager = ResultPager(mock_api, pager_config)
        with pytest.raises(ValueError):
            await pager.get_page("1", page_no, page_size)
        mock_api.get_merged_sample.assert_not_awaited()


class TestNormalization:
    @pytest.mark.asyncio
    async def test_has_more_recomputed_from_total(self, mock_api, pager_config):
        mock_api.get_merged_sample.return_value = page(page_no=2, total=20, has_more=True)
        result = await ResultPager(mock_api, pager_config).get_page("1", 2, 10)
        assert result.has_more is False
        assert result.pagination.total_pages == 2

    @pytest.mark.asyncio
    async def test_missing_has_more_filled_in(self, mock_api, pager_config):
        mock_api.get_merged_sample.return_value = page(page_no=1, total=25)
        result = await ResultPager(mock_api, pager_config).get_page("1", 1, 10)
        assert result.has_more is True
        assert result.pagination.total_pages == 3

    @pytest.mark.asyncio
    async def test_shape_error_propagates(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = InvalidResponseShape("get_merged_sample", "rows: Field required")
        with pytest.raises(InvalidResponseShape):
            await ResultPager(mock_api, pager_config).get_page("1")


class TestReadiness:
    @pytest.mark.asyncio
    async def test_running_job_is_not_ready(self, pager_config):
        api = InMemorySamplingApi()
        await api.start_job(1, 1, REQUEST)
        with pytest.raises(JobNotReadyError) as excinfo:
            await ResultPager(api, pager_config).get_page("1")
        assert excinfo.value.job_id == "1"
        assert excinfo.value.status != JobStatus.completed

    @pytest.mark.asyncio
    async def test_rejection_of_completed_job_propagates(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = api_error(404)
        mock_api.get_job_status.return_value = JobStatusResponse(
            id="1", status=JobStatus.completed, total_rounds=0, completed_rounds=0
        )
        with pytest.raises(SamplingApiException) as excinfo:
            await ResultPager(mock_api, pager_config).get_page("1")
        assert excinfo.value.response.status == 404

    @pytest.mark.asyncio
    async def test_failed_probe_keeps_original_error(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = api_error(409)
        mock_api.get_job_status.side_effect = api_error(500)
        with pytest.raises(SamplingApiException) as excinfo:
            await ResultPager(mock_api, pager_config).get_page("1")
        assert excinfo.value.response.status == 409


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = [api_error(503), page()]
        retry = TenacityRetryAdapter(wait_initial=0.01, wait_max=0.02)
        result = await ResultPager(mock_api, pager_config, retry).get_page("1", 1, 10)
        assert len(result.rows) == 10
        assert mock_api.get_merged_sample.await_count == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = api_error(403)
        retry = TenacityRetryAdapter(wait_initial=0.01, wait_max=0.02)
        with pytest.raises(SamplingApiException):
            await ResultPager(mock_api, pager_config, retry).get_page("1")
        assert mock_api.get_merged_sample.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_original_error(self, mock_api, pager_config):
        mock_api.get_merged_sample.side_effect = api_error(504)
        retry = TenacityRetryAdapter(wait_initial=0.01, wait_max=0.02)
        with pytest.raises(SamplingApiException) as excinfo:
            await ResultPager(mock_api, pager_config, retry).get_page("1")
        assert excinfo.value.response.status == 504
        assert mock_api.get_merged_sample.await_count == pager_config.fetch_max_retries
