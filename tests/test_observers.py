"""Unit tests for the bundled job lifecycle observers."""

import logging
import pytest

from sampling_jobs.core.managers.observers import CallbackObserver, ProgressLogObserver
from sampling_jobs.core.models.job import Job, JobStatus, RoundResult


@pytest.fixture
def running_job():
    return Job(
        id="job-1",
        status=JobStatus.running,
        total_rounds=2,
        completed_rounds=1,
        current_round=2,
        round_results=(RoundResult(round_number=1, method="random", sample_size=3),),
    )


class TestCallbackObserver:
    @pytest.mark.asyncio
    async def test_sync_callbacks(self, running_job):
        events = []
        observer = CallbackObserver(
            on_complete=lambda job_id, job: events.append(("complete", job_id)),
            on_failed=lambda message: events.append(("failed", message)),
            on_progress=lambda done, total: events.append(("progress", done, total)),
            on_started=lambda job: events.append(("started", job.id)),
        )
        await observer.on_job_started(running_job)
        await observer.on_progress(running_job, 1, 2)
        await observer.on_job_completed(running_job)
        await observer.on_job_failed(None, "boom")
        assert events == [
            ("started", "job-1"),
            ("progress", 1, 2),
            ("complete", "job-1"),
            ("failed", "boom"),
        ]

    @pytest.mark.asyncio
    async def test_async_callbacks(self, running_job):
        events = []

        async def on_progress(done, total):
            events.append((done, total))

        observer = CallbackObserver(on_progress=on_progress)
        await observer.on_progress(running_job, 1, 2)
        assert events == [(1, 2)]

    @pytest.mark.asyncio
    async def test_missing_callbacks_are_ignored(self, running_job):
        observer = CallbackObserver()
        await observer.on_job_completed(running_job)
        await observer.on_job_failed(running_job, "ignored")


class TestProgressLogObserver:
    @pytest.mark.asyncio
    async def test_logs_progress_and_failure(self, running_job, caplog):
        observer = ProgressLogObserver()
        with caplog.at_level(logging.INFO, logger="sampling_jobs.core.managers.observers"):
            await observer.on_progress(running_job, 1, 2)
            await observer.on_job_failed(None, "boom")
        assert "round 1/2 done" in caplog.text
        assert "message=boom" in caplog.text
