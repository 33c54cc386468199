"""Unit tests for the job, request and merged sample models.

Covers wire aliases, id coercion and the snapshot invariants enforced by Job.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from sampling_jobs.core.models.job import (
    DEFAULT_FAILURE_MESSAGE,
    Job,
    JobStatus,
    JobStatusResponse,
    RoundResult,
    StartJobResponse,
)
from sampling_jobs.core.models.merged_sample import MergedSamplePage, Pagination
from sampling_jobs.core.models.sampling_request import SamplingRequest, request_payload


def rounds(n):
    return [RoundResult(round_number=i, method="random", sample_size=5) for i in range(1, n + 1)]


class TestJobStatus:
    def test_terminal_statuses(self):
        assert JobStatus.completed.is_terminal
        assert JobStatus.failed.is_terminal
        assert not JobStatus.pending.is_terminal
        assert not JobStatus.running.is_terminal

    def test_rank_is_forward_only(self):
        assert JobStatus.pending.rank < JobStatus.running.rank < JobStatus.completed.rank
        assert JobStatus.completed.rank == JobStatus.failed.rank


class TestStartJobResponse:
    def test_run_id_alias_and_int_coercion(self):
        resp = StartJobResponse.model_validate({"run_id": 42, "status": "pending"})
        assert resp.job_id == "42"
        assert resp.status == JobStatus.pending
        assert not resp.has_round_results

    def test_embedded_results_detected(self):
        resp = StartJobResponse.model_validate(
            {
                "job_id": "a1",
                "status": "completed",
                "round_results": [{"round_number": 1, "method": "random", "sample_size": 3}],
            }
        )
        assert resp.has_round_results

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            StartJobResponse.model_validate({"run_id": 1, "status": "queued"})


class TestJobInvariants:
    def test_completed_rounds_must_match_results(self):
        with pytest.raises(ValidationError):
            Job(id="1", status=JobStatus.running, total_rounds=3, completed_rounds=2, round_results=tuple(rounds(1)))

    def test_completed_rounds_cannot_exceed_total(self):
        with pytest.raises(ValidationError):
            Job(id="1", status=JobStatus.running, total_rounds=1, completed_rounds=2, round_results=tuple(rounds(2)))

    def test_current_round_only_while_running(self):
        with pytest.raises(ValidationError):
            Job(id="1", status=JobStatus.pending, total_rounds=3, current_round=1)

    def test_execution_time_only_when_terminal(self):
        with pytest.raises(ValidationError):
            Job(id="1", status=JobStatus.running, total_rounds=3, execution_time_ms=10)

    def test_error_message_only_when_failed(self):
        with pytest.raises(ValidationError):
            Job(id="1", status=JobStatus.completed, error_message="boom")

    def test_progress(self):
        job = Job(id="1", status=JobStatus.running, total_rounds=4, completed_rounds=1, round_results=tuple(rounds(1)))
        assert job.progress == 0.25
        assert Job(id="2", status=JobStatus.completed).progress == 1.0
        assert Job(id="3", status=JobStatus.pending).progress == 0.0


class TestJobFactories:
    def test_from_status_response_drops_fields_not_allowed_by_status(self):
        resp = JobStatusResponse(
            id="7",
            status=JobStatus.pending,
            total_rounds=3,
            completed_rounds=0,
            current_round=1,
            execution_time_ms=5,
            error_message="stale",
            residual_uri="s3://bucket/residual",
        )
        job = Job.from_status_response(resp)
        assert job.current_round is None
        assert job.execution_time_ms is None
        assert job.error_message is None
        assert job.residual_uri is None

    def test_failed_status_gets_default_message(self):
        resp = JobStatusResponse(id="7", status=JobStatus.failed, total_rounds=2, completed_rounds=0)
        assert Job.from_status_response(resp).error_message == DEFAULT_FAILURE_MESSAGE

    def test_from_start_response_counts_from_embedded_results(self):
        started = datetime(2024, 1, 1, tzinfo=timezone.utc)
        resp = StartJobResponse(
            job_id="9",
            status=JobStatus.completed,
            round_results=rounds(2),
            started_at=started,
            completed_at=started + timedelta(seconds=1.5),
        )
        job = Job.from_start_response(resp)
        assert job.completed_rounds == 2
        assert job.total_rounds == 2
        assert job.execution_time_ms == 1500

    def test_from_start_response_without_timestamps_has_no_execution_time(self):
        resp = StartJobResponse(job_id="9", status=JobStatus.completed, round_results=rounds(1))
        assert Job.from_start_response(resp).execution_time_ms is None


class TestSamplingRequest:
    def test_payload_is_verbatim(self):
        request = SamplingRequest.model_validate(
            {
                "rounds": [
                    {"round_number": 1, "method": "random", "output_name": "r1", "seed": 7},
                ],
                "custom_flag": True,
            }
        )
        payload = request.to_payload()
        assert payload["custom_flag"] is True
        assert payload["rounds"][0]["seed"] == 7
        assert "export_residual" not in payload

    def test_rounds_required(self):
        with pytest.raises(ValidationError):
            SamplingRequest.model_validate({"rounds": []})

    def test_request_payload_accepts_dict(self):
        assert request_payload({"rounds": []}) == {"rounds": []}
        with pytest.raises(TypeError):
            request_payload(["not", "a", "request"])

    def test_round_method_is_not_restricted(self):
        request = SamplingRequest.model_validate(
            {"rounds": [{"round_number": 1, "method": "weighted_reservoir", "output_name": "r1"}]}
        )
        assert request.to_payload()["rounds"][0]["method"] == "weighted_reservoir"


class TestMergedSamplePage:
    def test_wire_aliases(self):
        page = MergedSamplePage.model_validate(
            {
                "data": [{"a": 1}],
                "columns": ["a"],
                "pagination": {"page": 1, "page_size": 1, "total_items": 3, "has_next": True, "total_pages": 3},
                "job_id": 5,
            }
        )
        assert page.rows == [{"a": 1}]
        assert page.pagination.total == 3
        assert page.has_more
        assert page.job_id == "5"

    def test_rows_and_pagination_required(self):
        with pytest.raises(ValidationError):
            MergedSamplePage.model_validate({"columns": ["a"]})

    def test_normalized_recomputes_has_more_and_total_pages(self):
        pagination = Pagination(page=2, page_size=10, total=20, has_more=True)
        normalized = pagination.normalized()
        assert normalized.has_more is False
        assert normalized.total_pages == 2

    def test_normalized_empty_result(self):
        normalized = Pagination(page=1, page_size=10, total=0).normalized()
        assert normalized.has_more is False
        assert normalized.total_pages == 0

    def test_has_previous_accepted_and_recomputed(self):
        pagination = Pagination.model_validate(
            {"page": 1, "page_size": 10, "total": 30, "has_next": True, "has_previous": True}
        )
        assert pagination.has_previous is True
        normalized = pagination.normalized()
        assert normalized.has_previous is False
        assert Pagination(page=3, page_size=10, total=30).normalized().has_previous is True
