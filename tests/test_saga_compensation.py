"""Compensation and cancellation tests for provisioning jobs.

Covers:
- A failing step triggers compensation of completed steps, last first
- Compensation keeps going when one compensation fails
- The failed job keeps the refs of the steps that completed
- A failed REPUBLISH puts the live site back the way it was
- A step whose result could not be recorded is still undone
- A step writing a reference owned by another step fails the job
- Cancelling a QUEUED job means it never starts
- Cancelling a RUNNING job stops it at the next step boundary
- An in-flight step finishes but its result is not recorded after a cancel
- With compensate_on_cancel, a cancelled job's effects are undone
- Cancelling an unknown or settled job returns False without writing
"""

import pytest

from dirsite.models.enums import JobStatus, JobType, StepName, TenantStatus
from dirsite.provisioning.refs import StaticSiteRefs
from dirsite.provisioning.service import ProvisioningService
from dirsite.provisioning.steps.base import BaseStep, StepOutcome
from dirsite.provisioning.steps.publish import (
    FinalizePublishStep,
    GenerateStaticSiteStep,
    ValidateTenantStep,
)
from dirsite.services.id_generator import sequential_id_factory

from tests.fakes import (
    FailingDomainProvider,
    FailingDropSearchProvider,
    GatedCdnProvider,
    make_tenant,
)


def _compensated(log_capture):
    return [e["step"] for e in log_capture.entries if e["event"] == "step_compensated"]


# ---------------------------------------------------------------------------
# Failure compensation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_failed_step_compensates_in_reverse(service, hosting, clock, log_capture):
    hosting.domains = FailingDomainProvider(clock)

    job_id = await service.create_provisioning_job("tnt_acme")
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.FAILED
    assert job.error_message == "domain: DNS provider rejected the zone update"
    assert job.steps_completed == 4
    assert job.progress == 67
    assert _compensated(log_capture) == [
        "SETUP_SEARCH_INDEX",
        "DEPLOY_TO_CDN",
        "GENERATE_STATIC_SITE",
    ]
    assert hosting.builder.builds == {}
    assert hosting.cdn.deployments == {}
    assert hosting.search.indexes == {}


@pytest.mark.asyncio
async def test_failed_job_keeps_completed_refs(service, hosting, clock):
    hosting.domains = FailingDomainProvider(clock)

    job_id = await service.create_provisioning_job("tnt_acme")
    job = await service.wait_for_job(job_id)

    assert job.external_refs["index_id"] == "idx-tnt_acme"
    assert job.external_refs["cdn_deployed"] is True
    assert "custom_domain" not in job.external_refs
    assert "result" not in job.external_refs

    status = await service.get_job_status(job_id)
    assert status["error_message"] == job.error_message
    assert "result" not in status


@pytest.mark.asyncio
async def test_compensation_continues_past_failure(service, hosting, clock, log_capture):
    hosting.domains = FailingDomainProvider(clock)
    hosting.search = FailingDropSearchProvider(clock)

    job_id = await service.create_provisioning_job("tnt_acme")
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.FAILED
    failed = [e for e in log_capture.entries if e["event"] == "compensation_failed"]
    assert [e["step"] for e in failed] == ["SETUP_SEARCH_INDEX"]
    assert _compensated(log_capture) == ["DEPLOY_TO_CDN", "GENERATE_STATIC_SITE"]
    assert hosting.search.indexes == {"idx-tnt_acme": ["lst_1"]}
    assert hosting.cdn.deployments == {}
    assert hosting.builder.builds == {}


@pytest.mark.asyncio
async def test_tenant_is_not_published_on_failure(service, tenant_store, hosting, clock):
    hosting.domains = FailingDomainProvider(clock)

    job_id = await service.create_provisioning_job("tnt_acme")
    await service.wait_for_job(job_id)

    assert tenant_store.updates == []
    assert tenant_store.tenants["tnt_acme"].published_at is None


@pytest.mark.asyncio
async def test_failed_republish_restores_live_site(service, tenant_store, hosting, clock, log_capture):
    first = await service.create_provisioning_job("tnt_acme")
    await service.wait_for_job(first)
    live = hosting.cdn.deployments["acme.example.com"]
    published_at = tenant_store.tenants["tnt_acme"].published_at

    tenant_store.tenants["tnt_acme"] = make_tenant(listings=2, status=TenantStatus.PUBLISHED).model_copy(
        update={"published_at": published_at}
    )
    hosting.domains = FailingDomainProvider(clock)
    job_id = await service.create_provisioning_job("tnt_acme", JobType.REPUBLISH)
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.FAILED
    assert _compensated(log_capture) == [
        "SETUP_SEARCH_INDEX",
        "DEPLOY_TO_CDN",
        "GENERATE_STATIC_SITE",
    ]
    # The site published by the first job is still served
    assert hosting.cdn.deployments["acme.example.com"] == live
    assert hosting.builder.builds == {live.build_id: "tnt_acme"}
    assert hosting.search.indexes == {"idx-tnt_acme": ["lst_1"]}
    assert hosting.search.snapshots == {}
    assert len(tenant_store.updates) == 1
    assert tenant_store.tenants["tnt_acme"].published_at == published_at


@pytest.mark.asyncio
async def test_republish_replaces_index_and_drops_rollback_copy(service, tenant_store, hosting):
    first = await service.create_provisioning_job("tnt_acme")
    await service.wait_for_job(first)

    tenant_store.tenants["tnt_acme"] = make_tenant(listings=2, status=TenantStatus.PUBLISHED)
    job_id = await service.create_provisioning_job("tnt_acme", JobType.REPUBLISH)
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.COMPLETED
    assert job.compensation_data["DEPLOY_TO_CDN"]["previous_deployment_id"] is not None
    assert job.compensation_data["SETUP_SEARCH_INDEX"]["snapshot_id"]
    assert hosting.search.indexes == {"idx-tnt_acme": ["lst_1", "lst_2"]}
    assert hosting.search.snapshots == {}


@pytest.mark.asyncio
async def test_step_is_undone_when_its_progress_write_fails(service, job_store, hosting, log_capture):
    job_store.fail_when = {"progress": 33}

    job_id = await service.create_provisioning_job("tnt_acme")
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.FAILED
    assert job.error_message == "store unavailable while writing progress=33"
    assert job.steps_completed == 1
    assert _compensated(log_capture) == ["GENERATE_STATIC_SITE"]
    assert hosting.builder.builds == {}


class ConflictingBuildStep(BaseStep):
    """Claims a build id that GENERATE_STATIC_SITE has already written."""

    name = StepName.DEPLOY_TO_CDN
    refs_model = StaticSiteRefs

    def __init__(self):
        self.compensated: list[str] = []

    async def run(self, ctx):
        return StepOutcome(refs=StaticSiteRefs(build_id="build-conflict"))

    async def compensate(self, ctx, refs, compensation):
        self.compensated.append(refs.build_id)


@pytest.mark.asyncio
async def test_conflicting_ref_fails_job_and_compensates(job_store, tenant_store, hosting, clock, logger, log_capture):
    conflicting = ConflictingBuildStep()
    steps = [ValidateTenantStep(), GenerateStaticSiteStep(), conflicting, FinalizePublishStep()]
    service = ProvisioningService(
        job_store,
        tenant_store,
        hosting,
        clock=clock,
        logger=logger,
        id_factory=sequential_id_factory(),
        step_factory=lambda job_type: steps,
    )

    job_id = await service.create_provisioning_job("tnt_acme")
    job = await service.wait_for_job(job_id)
    await service.shutdown()

    assert job.status == JobStatus.FAILED
    assert job.error_message == "External reference 'build_id' already set"
    assert job.steps_completed == 2
    assert job.external_refs["build_id"] != "build-conflict"
    assert _compensated(log_capture) == ["DEPLOY_TO_CDN", "GENERATE_STATIC_SITE"]
    assert conflicting.compensated == ["build-conflict"]
    assert hosting.builder.builds == {}
    assert tenant_store.updates == []


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancel_queued_job(service, hosting):
    job_id = await service.create_provisioning_job("tnt_acme")

    assert await service.cancel_job(job_id) is True
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.CANCELLED
    assert job.started_at is None
    assert job.steps_completed == 0
    assert hosting.builder.builds == {}


@pytest.mark.asyncio
async def test_cancel_running_job_stops_after_inflight_step(service, hosting, clock, log_capture):
    hosting.cdn = GatedCdnProvider(clock)

    job_id = await service.create_provisioning_job("tnt_acme")
    await hosting.cdn.entered.wait()

    assert await service.cancel_job(job_id) is True
    hosting.cdn.release.set()
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.CANCELLED
    assert job.steps_completed == 2
    assert job.progress == 33
    assert job.current_step == "GENERATE_STATIC_SITE"
    assert "deployment_url" not in job.external_refs
    # In-flight work finished; nothing after it ran and nothing was undone
    assert list(hosting.cdn.deployments) == ["acme.example.com"]
    assert len(hosting.builder.builds) == 1
    assert hosting.search.indexes == {}
    assert _compensated(log_capture) == []
    dropped = [e for e in log_capture.entries if e["event"] == "step_finished_after_cancel"]
    assert dropped[0]["step"] == "DEPLOY_TO_CDN"
    assert dropped[0]["dropped_refs"]["deployment_url"] == "https://acme.example.com"

    status = await service.get_job_status(job_id)
    assert "error_message" not in status
    assert "result" not in status
    assert "completed_at" in status


@pytest.mark.asyncio
async def test_cancel_with_compensation(job_store, tenant_store, hosting, clock, logger, log_capture):
    hosting.cdn = GatedCdnProvider(clock)
    service = ProvisioningService(
        job_store,
        tenant_store,
        hosting,
        clock=clock,
        logger=logger,
        id_factory=sequential_id_factory(),
        compensate_on_cancel=True,
    )

    job_id = await service.create_provisioning_job("tnt_acme")
    await hosting.cdn.entered.wait()
    await service.cancel_job(job_id)
    hosting.cdn.release.set()
    job = await service.wait_for_job(job_id)

    assert job.status == JobStatus.CANCELLED
    assert _compensated(log_capture) == ["DEPLOY_TO_CDN", "GENERATE_STATIC_SITE"]
    assert hosting.cdn.deployments == {}
    assert hosting.builder.builds == {}


@pytest.mark.asyncio
async def test_cancel_unknown_job(service, job_store):
    assert await service.cancel_job("job_nope") is False
    assert job_store.writes == []


@pytest.mark.asyncio
async def test_cancel_settled_job_does_not_write(service, job_store):
    job_id = await service.create_provisioning_job("tnt_acme")
    await service.wait_for_job(job_id)
    writes = len(job_store.writes)

    assert await service.cancel_job(job_id) is False
    assert len(job_store.writes) == writes
    assert (await service.get_job(job_id)).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_cancel_failed_job(service, job_store):
    job_id = await service.create_provisioning_job("tnt_missing")
    await service.wait_for_job(job_id)

    assert await service.cancel_job(job_id) is False
    assert (await service.get_job(job_id)).status == JobStatus.FAILED
