"""Unit tests for the single-fire completion latch."""

import asyncio
import pytest
from unittest.mock import AsyncMock

from sampling_jobs.core.exceptions import JobCancelledError, JobFailedError
from sampling_jobs.core.managers.completion_guard import CompletionGuard
from sampling_jobs.core.models.job import Job, JobStatus, RoundResult


@pytest.fixture
def completed_job():
    return Job(
        id="job-1",
        status=JobStatus.completed,
        total_rounds=1,
        completed_rounds=1,
        round_results=(RoundResult(round_number=1, method="random", sample_size=5),),
    )


@pytest.fixture
def observer():
    return AsyncMock()


class TestCompletionGuard:
    @pytest.mark.asyncio
    async def test_success_fires_once(self, completed_job, observer):
        guard = CompletionGuard(1, [observer])
        assert await guard.fire_success(completed_job) is True
        assert await guard.fire_success(completed_job) is False
        assert await guard.fire_failure(completed_job, "late") is False
        observer.on_job_completed.assert_awaited_once_with(completed_job)
        observer.on_job_failed.assert_not_awaited()
        assert guard.outcome == "completed"

    @pytest.mark.asyncio
    async def test_failure_fires_once(self, observer):
        guard = CompletionGuard(1, [observer])
        assert await guard.fire_failure(None, "boom") is True
        assert await guard.fire_failure(None, "again") is False
        observer.on_job_failed.assert_awaited_once_with(None, "boom")

    @pytest.mark.asyncio
    async def test_concurrent_fires_notify_once(self, completed_job, observer):
        guard = CompletionGuard(1, [observer])
        results = await asyncio.gather(
            guard.fire_success(completed_job),
            guard.fire_failure(completed_job, "racing"),
        )
        assert sorted(results) == [False, True]
        assert observer.on_job_completed.await_count + observer.on_job_failed.await_count == 1

    @pytest.mark.asyncio
    async def test_disarmed_guard_never_notifies(self, completed_job, observer):
        guard = CompletionGuard(1, [observer])
        assert guard.disarm("superseded") is True
        assert guard.disarm("again") is False
        assert await guard.fire_success(completed_job) is False
        observer.on_job_completed.assert_not_awaited()
        assert guard.fired
        assert guard.outcome == "cancelled"

    @pytest.mark.asyncio
    async def test_observer_error_does_not_escape(self, completed_job):
        failing = AsyncMock()
        failing.on_job_completed.side_effect = RuntimeError("observer broke")
        healthy = AsyncMock()
        guard = CompletionGuard(1, [failing, healthy])
        assert await guard.fire_success(completed_job) is True
        healthy.on_job_completed.assert_awaited_once_with(completed_job)


class TestCompletionGuardWait:
    @pytest.mark.asyncio
    async def test_wait_returns_job_on_success(self, completed_job):
        guard = CompletionGuard(1)
        waiter = asyncio.create_task(guard.wait())
        await asyncio.sleep(0)
        await guard.fire_success(completed_job)
        assert await waiter is completed_job

    @pytest.mark.asyncio
    async def test_wait_raises_on_failure(self):
        guard = CompletionGuard(1)
        await guard.fire_failure(None, "Round 2 failed")
        with pytest.raises(JobFailedError) as excinfo:
            await guard.wait()
        assert excinfo.value.message == "Round 2 failed"

    @pytest.mark.asyncio
    async def test_wait_raises_when_disarmed(self):
        guard = CompletionGuard(1)
        guard.disarm("cancelled")
        with pytest.raises(JobCancelledError):
            await guard.wait()
