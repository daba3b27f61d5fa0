"""Steps that publish a tenant's directory site."""

from typing import Any

from dirsite.models.enums import StepName, TenantStatus
from dirsite.models.job import PublishResult
from dirsite.provisioning.refs import (
    CdnRefs,
    DomainRefs,
    PublishedRefs,
    SearchIndexRefs,
    StaticSiteRefs,
    StepRefs,
)
from dirsite.provisioning.steps.base import BaseStep, StepContext, StepOutcome


def search_index_id(tenant_id: str) -> str:
    return f"idx-{tenant_id}"


class ValidateTenantStep(BaseStep):
    name = StepName.VALIDATE_TENANT
    description = "Validating tenant data"

    async def run(self, ctx: StepContext) -> StepOutcome:
        tenant = ctx.require_tenant()

        # Empty directories are allowed to publish; the wizard may fill them later
        if not tenant.active_categories:
            ctx.logger.warning("tenant_has_no_categories", tenant_id=tenant.tenant_id)
        if not tenant.listings:
            ctx.logger.warning("tenant_has_no_listings", tenant_id=tenant.tenant_id)

        return StepOutcome()


class GenerateStaticSiteStep(BaseStep):
    name = StepName.GENERATE_STATIC_SITE
    description = "Generating static site files"
    refs_model = StaticSiteRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        build_id = await ctx.hosting.builder.build(ctx.require_tenant())
        return StepOutcome(refs=StaticSiteRefs(build_id=build_id))

    async def compensate(self, ctx: StepContext, refs: StepRefs | None, compensation: dict[str, Any]) -> None:
        if isinstance(refs, StaticSiteRefs):
            await ctx.hosting.builder.delete_build(refs.build_id)


class DeployToCdnStep(BaseStep):
    name = StepName.DEPLOY_TO_CDN
    description = "Deploying to CDN"
    refs_model = CdnRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        hostname = ctx.hostname
        build_id = ctx.job.external_refs.get("build_id", "")
        previous = await ctx.hosting.cdn.current(hostname)
        deployment = await ctx.hosting.cdn.deploy(build_id, hostname)
        return StepOutcome(
            refs=CdnRefs(deployment_url=deployment.url),
            compensation={
                "deployment_id": deployment.deployment_id,
                "hostname": hostname,
                "previous_deployment_id": previous.deployment_id if previous else None,
            },
        )

    async def compensate(self, ctx: StepContext, refs: StepRefs | None, compensation: dict[str, Any]) -> None:
        hostname = compensation.get("hostname")
        if not hostname:
            return
        previous = compensation.get("previous_deployment_id")
        if previous:
            # A live site goes back to what it served before this job
            await ctx.hosting.cdn.promote(hostname, previous)
        else:
            await ctx.hosting.cdn.undeploy(hostname)


class SetupSearchIndexStep(BaseStep):
    name = StepName.SETUP_SEARCH_INDEX
    description = "Setting up search index"
    refs_model = SearchIndexRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        tenant = ctx.require_tenant()
        index_id = search_index_id(tenant.tenant_id)
        snapshot_id = await ctx.hosting.search.snapshot_index(index_id)
        count = await ctx.hosting.search.create_index(index_id, tenant.listings)
        ctx.logger.info("search_index_loaded", index_id=index_id, documents=count)
        compensation = {"snapshot_id": snapshot_id} if snapshot_id else {}
        return StepOutcome(refs=SearchIndexRefs(index_id=index_id), compensation=compensation)

    async def compensate(self, ctx: StepContext, refs: StepRefs | None, compensation: dict[str, Any]) -> None:
        if not isinstance(refs, SearchIndexRefs):
            return
        snapshot_id = compensation.get("snapshot_id")
        if snapshot_id:
            await ctx.hosting.search.restore_index(refs.index_id, snapshot_id)
        else:
            await ctx.hosting.search.drop_index(refs.index_id)


class ConfigureDomainStep(BaseStep):
    name = StepName.CONFIGURE_DOMAIN
    description = "Configuring custom domain"
    refs_model = DomainRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        hostname = ctx.hostname
        target = ctx.job.external_refs.get("deployment_url", ctx.site_url)
        previous = await ctx.hosting.domains.current(hostname)
        await ctx.hosting.domains.bind(hostname, target)
        return StepOutcome(
            refs=DomainRefs(custom_domain=hostname),
            compensation={"target": target, "previous_target": previous},
        )

    async def compensate(self, ctx: StepContext, refs: StepRefs | None, compensation: dict[str, Any]) -> None:
        if not isinstance(refs, DomainRefs):
            return
        previous = compensation.get("previous_target")
        if previous is None:
            await ctx.hosting.domains.release(refs.custom_domain)
        elif previous != compensation.get("target"):
            await ctx.hosting.domains.release(refs.custom_domain)
            await ctx.hosting.domains.bind(refs.custom_domain, previous)


class FinalizePublishStep(BaseStep):
    name = StepName.COMPLETED
    description = "Provisioning completed"
    refs_model = PublishedRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        tenant = ctx.require_tenant()
        await ctx.tenants.update(
            tenant.tenant_id,
            status=TenantStatus.PUBLISHED,
            published_at=ctx.clock.now(),
        )

        # The new index is live; the copy kept for rollback is not needed
        search = ctx.job.compensation_data.get(str(StepName.SETUP_SEARCH_INDEX), {})
        if search.get("snapshot_id"):
            await ctx.hosting.search.drop_snapshot(search["snapshot_id"])

        site_url = ctx.site_url
        return StepOutcome(
            refs=PublishedRefs(
                result=PublishResult(tenant_url=site_url, admin_url=f"{site_url}/admin"),
            )
        )
