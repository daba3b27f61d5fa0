"""Tenant publishing and provisioning job routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dirsite.dependencies import get_db, get_provisioning, get_trace_id
from dirsite.errors.exceptions import ConflictError, NotFoundError
from dirsite.logging_config import bind_request_context
from dirsite.models.enums import JobType, TenantStatus
from dirsite.provisioning.service import ProvisioningService
from dirsite.provisioning.status import format_job_status
from dirsite.repositories.tenant_repo import TenantRepository

router = APIRouter(tags=["Provisioning"])


# --- Request models ---


class CreateJobRequest(BaseModel):
    type: JobType = JobType.CREATE


# --- Helpers ---


async def _ensure_tenant_exists(tenant_id: str, db: AsyncSession):
    row = await TenantRepository(db).get(tenant_id)
    if not row:
        raise NotFoundError("Tenant", tenant_id)
    return row


async def _start_job(
    tenant_id: str,
    job_type: JobType,
    provisioning: ProvisioningService,
) -> dict:
    active = await provisioning.get_active_jobs(tenant_id)
    if active:
        raise ConflictError(
            "Tenant already has a provisioning job in progress",
            details={"job_id": active[0].id, "status": active[0].status.value},
        )

    job_id = await provisioning.create_provisioning_job(tenant_id, job_type)
    return {
        "message": "Provisioning started",
        "job_id": job_id,
        "tenant_id": tenant_id,
        "type": job_type.value,
        "status": "QUEUED",
    }


async def _get_tenant_job(tenant_id: str, job_id: str, provisioning: ProvisioningService):
    job = await provisioning.get_job(job_id)
    # Jobs of other tenants are reported as missing
    if job is None or job.tenant_id != tenant_id:
        raise NotFoundError("Job", job_id)
    return job


# --- Routes ---


@router.post("/tenants/{tenant_id}/publish", status_code=202)
async def publish_tenant(
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
    provisioning: ProvisioningService = Depends(get_provisioning),
    trace_id: str = Depends(get_trace_id),
) -> dict:
    tenant = await _ensure_tenant_exists(tenant_id, db)
    bind_request_context(trace_id, tenant_id=tenant_id)

    job_type = JobType.REPUBLISH if tenant.status == TenantStatus.PUBLISHED else JobType.CREATE
    return await _start_job(tenant_id, job_type, provisioning)


@router.post("/tenants/{tenant_id}/jobs", status_code=202)
async def create_job(
    tenant_id: str,
    body: CreateJobRequest,
    db: AsyncSession = Depends(get_db),
    provisioning: ProvisioningService = Depends(get_provisioning),
    trace_id: str = Depends(get_trace_id),
) -> dict:
    await _ensure_tenant_exists(tenant_id, db)
    bind_request_context(trace_id, tenant_id=tenant_id)
    return await _start_job(tenant_id, body.type, provisioning)


@router.get("/tenants/{tenant_id}/jobs")
async def list_tenant_jobs(
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
    provisioning: ProvisioningService = Depends(get_provisioning),
) -> list[dict]:
    await _ensure_tenant_exists(tenant_id, db)
    jobs = await provisioning.get_tenant_jobs(tenant_id)
    return [format_job_status(job) for job in jobs]


@router.get("/tenants/{tenant_id}/jobs/{job_id}")
async def get_job_status(
    tenant_id: str,
    job_id: str,
    provisioning: ProvisioningService = Depends(get_provisioning),
) -> dict:
    job = await _get_tenant_job(tenant_id, job_id, provisioning)
    return format_job_status(job)


@router.post("/tenants/{tenant_id}/jobs/{job_id}/cancel")
async def cancel_job(
    tenant_id: str,
    job_id: str,
    provisioning: ProvisioningService = Depends(get_provisioning),
) -> dict:
    job = await _get_tenant_job(tenant_id, job_id, provisioning)
    if not await provisioning.cancel_job(job_id):
        raise ConflictError(
            f"Job '{job_id}' has already finished",
            details={"status": job.status.value},
        )
    return {"job_id": job_id, "cancelled": True}
