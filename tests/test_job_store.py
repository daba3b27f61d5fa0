"""Database-backed job and tenant store tests."""

from datetime import datetime, timedelta, timezone

import pytest

from dirsite.errors.exceptions import NotFoundError
from dirsite.models.enums import ACTIVE_STATUSES, JobStatus, JobType, TenantStatus
from dirsite.provisioning.store import ProvisioningJobStore, TenantStore

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


async def _create_job(store, job_id, tenant_id="tnt_acme", created_at=T0, status=JobStatus.QUEUED):
    return await store.create(
        id=job_id,
        tenant_id=tenant_id,
        type=JobType.CREATE,
        status=status,
        progress=0,
        current_step="QUEUED",
        steps_total=6,
        steps_completed=0,
        external_refs={},
        compensation_data={},
        created_at=created_at,
    )


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_find(session_factory, seed_tenant):
    await seed_tenant()
    store = ProvisioningJobStore(session_factory)

    created = await _create_job(store, "job_0001")
    found = await store.find_unique("job_0001")

    assert created.id == found.id == "job_0001"
    assert found.type == JobType.CREATE
    assert found.status == JobStatus.QUEUED
    assert found.created_at == T0
    assert found.external_refs == {}
    assert await store.find_unique("job_nope") is None


@pytest.mark.asyncio
async def test_find_many_newest_first(session_factory, seed_tenant):
    await seed_tenant()
    await seed_tenant("tnt_beta", "beta")
    store = ProvisioningJobStore(session_factory)
    await _create_job(store, "job_0001", created_at=T0)
    await _create_job(store, "job_0002", created_at=T0 + timedelta(seconds=10))
    await _create_job(store, "job_0003", tenant_id="tnt_beta", created_at=T0 + timedelta(seconds=20))
    await _create_job(store, "job_0004", created_at=T0 + timedelta(seconds=30), status=JobStatus.COMPLETED)

    acme = await store.find_many(tenant_id="tnt_acme")
    assert [j.id for j in acme] == ["job_0004", "job_0002", "job_0001"]

    active = await store.find_many(statuses=ACTIVE_STATUSES)
    assert [j.id for j in active] == ["job_0003", "job_0002", "job_0001"]


@pytest.mark.asyncio
async def test_update_persists_refs(session_factory, seed_tenant):
    await seed_tenant()
    store = ProvisioningJobStore(session_factory)
    await _create_job(store, "job_0001")

    updated = await store.update(
        "job_0001",
        steps_completed=2,
        progress=33,
        external_refs={"build_id": "build-0001"},
    )
    assert updated.progress == 33

    found = await store.find_unique("job_0001")
    assert found.steps_completed == 2
    assert found.external_refs == {"build_id": "build-0001"}


@pytest.mark.asyncio
async def test_update_missing_job(session_factory):
    store = ProvisioningJobStore(session_factory)
    with pytest.raises(NotFoundError):
        await store.update("job_nope", progress=10)


@pytest.mark.asyncio
async def test_transition_is_guarded(session_factory, seed_tenant):
    await seed_tenant()
    store = ProvisioningJobStore(session_factory)
    await _create_job(store, "job_0001")

    running = await store.transition("job_0001", [JobStatus.QUEUED], status=JobStatus.RUNNING, started_at=T0)
    assert running.status == JobStatus.RUNNING
    assert running.started_at == T0

    # Not QUEUED any more
    assert await store.transition("job_0001", [JobStatus.QUEUED], status=JobStatus.CANCELLED) is None
    assert (await store.find_unique("job_0001")).status == JobStatus.RUNNING

    cancelled = await store.transition("job_0001", ACTIVE_STATUSES, status=JobStatus.CANCELLED)
    assert cancelled.status == JobStatus.CANCELLED
    assert await store.transition("job_0001", [JobStatus.RUNNING], progress=50) is None
    assert await store.transition("job_nope", ACTIVE_STATUSES, status=JobStatus.CANCELLED) is None


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tenant_snapshot(session_factory, seed_tenant):
    await seed_tenant(categories=3, listings=2)
    tenant = await TenantStore(session_factory).find_unique("tnt_acme")

    assert tenant.domain == "acme"
    assert tenant.status == TenantStatus.DRAFT
    assert [c.slug for c in tenant.categories] == ["category-1", "category-2", "category-3"]
    assert len(tenant.listings) == 2
    assert tenant.branding.font_family == "Inter"


@pytest.mark.asyncio
async def test_tenant_snapshot_without_content(session_factory, seed_tenant):
    await seed_tenant(categories=0, listings=0, branding=False)
    tenant = await TenantStore(session_factory).find_unique("tnt_acme")

    assert tenant.categories == ()
    assert tenant.listings == ()
    assert tenant.branding is None


@pytest.mark.asyncio
async def test_missing_tenant(session_factory):
    store = TenantStore(session_factory)
    assert await store.find_unique("tnt_nope") is None
    with pytest.raises(NotFoundError):
        await store.update("tnt_nope", status=TenantStatus.PUBLISHED, published_at=T0)


@pytest.mark.asyncio
async def test_tenant_update(session_factory, seed_tenant):
    await seed_tenant()
    store = TenantStore(session_factory)

    await store.update("tnt_acme", status=TenantStatus.PUBLISHED, published_at=T0)
    tenant = await store.find_unique("tnt_acme")
    assert tenant.status == TenantStatus.PUBLISHED
    assert tenant.published_at.replace(tzinfo=timezone.utc) == T0
