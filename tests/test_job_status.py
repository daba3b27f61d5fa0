"""Tests for progress arithmetic and the job status payload."""

from datetime import datetime, timezone

import pytest

from dirsite.models.enums import JobStatus, JobType
from dirsite.models.job import JobRecord
from dirsite.provisioning.status import compute_progress, format_job_status

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _job(**overrides) -> JobRecord:
    fields = dict(
        id="job_0001",
        tenant_id="tnt_acme",
        type=JobType.CREATE,
        status=JobStatus.QUEUED,
        progress=0,
        current_step="QUEUED",
        steps_total=6,
        steps_completed=0,
        created_at=T0,
    )
    fields.update(overrides)
    return JobRecord(**fields)


@pytest.mark.parametrize(
    "completed,total,expected",
    [
        (0, 6, 0),
        (1, 6, 17),
        (2, 6, 33),
        (3, 6, 50),
        (4, 6, 67),
        (5, 6, 83),
        (6, 6, 100),
        (1, 8, 13),
        (3, 8, 38),
        (1, 5, 20),
        (0, 0, 0),
    ],
)
def test_compute_progress(completed, total, expected):
    assert compute_progress(completed, total) == expected


def test_queued_status_has_no_optional_fields():
    status = format_job_status(_job())
    assert status == {
        "job_id": "job_0001",
        "tenant_id": "tnt_acme",
        "status": "QUEUED",
        "progress": 0,
        "current_step": "QUEUED",
        "steps_total": 6,
        "steps_completed": 0,
    }


def test_running_status_has_started_at():
    status = format_job_status(_job(status=JobStatus.RUNNING, started_at=T0, steps_completed=1, progress=17))
    assert status["started_at"] == "2025-01-01T00:00:00Z"
    assert "completed_at" not in status


def test_completed_status_includes_result():
    job = _job(
        status=JobStatus.COMPLETED,
        progress=100,
        current_step="COMPLETED",
        steps_completed=6,
        started_at=T0,
        completed_at=T0,
        external_refs={
            "build_id": "build-0001",
            "result": {"tenant_url": "https://acme.example.com", "admin_url": "https://acme.example.com/admin"},
        },
    )
    status = format_job_status(job)
    assert status["result"] == {
        "tenant_url": "https://acme.example.com",
        "admin_url": "https://acme.example.com/admin",
    }
    # Raw refs are internal
    assert "external_refs" not in status
    assert "build_id" not in status


def test_error_message_only_when_failed():
    failed = format_job_status(_job(status=JobStatus.FAILED, error_message="Tenant not found"))
    assert failed["error_message"] == "Tenant not found"

    cancelled = format_job_status(_job(status=JobStatus.CANCELLED, error_message="stale"))
    assert "error_message" not in cancelled


def test_result_hidden_unless_completed():
    job = _job(
        status=JobStatus.CANCELLED,
        external_refs={"result": {"tenant_url": "https://a", "admin_url": "https://a/admin"}},
    )
    assert "result" not in format_job_status(job)


def test_naive_timestamps_read_as_utc():
    job = _job(created_at=datetime(2025, 1, 1), started_at=datetime(2025, 1, 1, 0, 0, 5))
    assert job.created_at.tzinfo == timezone.utc
    assert job.started_at == datetime(2025, 1, 1, 0, 0, 5, tzinfo=timezone.utc)


def test_record_validates_from_row_attribute_names():
    job = JobRecord.model_validate({
        "job_id": "job_0002",
        "tenant_id": "tnt_acme",
        "job_type": "DELETE",
        "status": "RUNNING",
        "progress": 20,
        "current_step": "VALIDATE_TENANT",
        "steps_total": 5,
        "steps_completed": 1,
        "external_refs": None,
        "compensation_data": None,
        "created_at": T0,
    })
    assert job.id == "job_0002"
    assert job.type == JobType.DELETE
    assert job.external_refs == {}
    assert not job.is_terminal
