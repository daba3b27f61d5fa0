"""Steps that take a published site offline (DELETE jobs).

Teardown is not undone on failure: a half-removed site is left for the next
DELETE or REPUBLISH to converge.
"""

from dirsite.models.enums import StepName, TenantStatus
from dirsite.provisioning.refs import (
    CdnUndeployedRefs,
    DomainReleasedRefs,
    SearchIndexDroppedRefs,
    UnpublishedRefs,
)
from dirsite.provisioning.steps.base import BaseStep, StepContext, StepOutcome
from dirsite.provisioning.steps.publish import search_index_id


class ReleaseDomainStep(BaseStep):
    name = StepName.RELEASE_DOMAIN
    description = "Releasing custom domain"
    refs_model = DomainReleasedRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        await ctx.hosting.domains.release(ctx.hostname)
        return StepOutcome(refs=DomainReleasedRefs())


class DropSearchIndexStep(BaseStep):
    name = StepName.DROP_SEARCH_INDEX
    description = "Dropping search index"
    refs_model = SearchIndexDroppedRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        await ctx.hosting.search.drop_index(search_index_id(ctx.require_tenant().tenant_id))
        return StepOutcome(refs=SearchIndexDroppedRefs())


class UndeployFromCdnStep(BaseStep):
    name = StepName.UNDEPLOY_FROM_CDN
    description = "Removing site from CDN"
    refs_model = CdnUndeployedRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        await ctx.hosting.cdn.undeploy(ctx.hostname)
        return StepOutcome(refs=CdnUndeployedRefs())


class FinalizeUnpublishStep(BaseStep):
    name = StepName.COMPLETED
    description = "Site unpublished"
    refs_model = UnpublishedRefs

    async def run(self, ctx: StepContext) -> StepOutcome:
        tenant = ctx.require_tenant()
        await ctx.tenants.update(tenant.tenant_id, status=TenantStatus.DRAFT, published_at=None)
        return StepOutcome(refs=UnpublishedRefs())
