"""Typed external references produced by provisioning steps.

Every step that records external references returns exactly one of the
models below. The models are a tagged union on ``kind``; on the job record
their fields are flattened into ``external_refs`` and each model owns a
disjoint set of keys.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from dirsite.errors.exceptions import ExternalRefConflictError
from dirsite.models.job import PublishResult


class StepRefs(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def owned_keys(cls) -> frozenset[str]:
        return frozenset(name for name in cls.model_fields if name != "kind")

    def as_refs(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"kind"})


class StaticSiteRefs(StepRefs):
    kind: Literal["static_site"] = "static_site"
    static_site_generated: bool = True
    build_id: str


class CdnRefs(StepRefs):
    kind: Literal["cdn"] = "cdn"
    cdn_deployed: bool = True
    deployment_url: str


class SearchIndexRefs(StepRefs):
    kind: Literal["search_index"] = "search_index"
    search_index_created: bool = True
    index_id: str


class DomainRefs(StepRefs):
    kind: Literal["domain"] = "domain"
    domain_configured: bool = True
    custom_domain: str


class PublishedRefs(StepRefs):
    kind: Literal["published"] = "published"
    result: PublishResult


class DomainReleasedRefs(StepRefs):
    kind: Literal["domain_released"] = "domain_released"
    domain_released: bool = True


class SearchIndexDroppedRefs(StepRefs):
    kind: Literal["search_index_dropped"] = "search_index_dropped"
    search_index_dropped: bool = True


class CdnUndeployedRefs(StepRefs):
    kind: Literal["cdn_undeployed"] = "cdn_undeployed"
    cdn_undeployed: bool = True


class UnpublishedRefs(StepRefs):
    kind: Literal["unpublished"] = "unpublished"
    unpublished: bool = True


AnyStepRefs = Annotated[
    Union[
        StaticSiteRefs,
        CdnRefs,
        SearchIndexRefs,
        DomainRefs,
        PublishedRefs,
        DomainReleasedRefs,
        SearchIndexDroppedRefs,
        CdnUndeployedRefs,
        UnpublishedRefs,
    ],
    Field(discriminator="kind"),
]


def merge_refs(current: dict[str, Any], delta: StepRefs | None) -> dict[str, Any]:
    """Return ``current`` extended with ``delta``.

    Keys only ever accumulate. Re-writing a key with the same value is
    allowed (a resumed step may run twice); a different value raises.
    """
    merged = dict(current)
    if delta is None:
        return merged
    for key, value in delta.as_refs().items():
        if key in merged and merged[key] != value:
            raise ExternalRefConflictError(key, merged[key], value)
        merged[key] = value
    return merged
