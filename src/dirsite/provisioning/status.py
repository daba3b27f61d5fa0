"""Progress arithmetic and the client-facing job status shape."""

from dirsite.models.enums import JobStatus
from dirsite.models.job import JobRecord, JobStatusModel, PublishResult


def compute_progress(steps_completed: int, steps_total: int) -> int:
    """Percentage of steps done, rounded half up (1/6 -> 17, 1/8 -> 13)."""
    if steps_total <= 0:
        return 0
    return (200 * steps_completed + steps_total) // (2 * steps_total)


def format_job_status(job: JobRecord) -> dict:
    """Map a job record to the status payload returned to pollers.

    ``started_at`` and ``completed_at`` appear once set, ``result`` only for
    a completed job that recorded one, ``error_message`` only when failed.
    """
    result = None
    if job.status == JobStatus.COMPLETED and job.external_refs.get("result"):
        result = PublishResult.model_validate(job.external_refs["result"])

    model = JobStatusModel(
        job_id=job.id,
        tenant_id=job.tenant_id,
        status=job.status,
        progress=job.progress,
        current_step=job.current_step,
        steps_total=job.steps_total,
        steps_completed=job.steps_completed,
        started_at=job.started_at,
        completed_at=job.completed_at,
        result=result,
        error_message=job.error_message if job.status == JobStatus.FAILED else None,
    )
    return model.model_dump(mode="json", exclude_none=True)
