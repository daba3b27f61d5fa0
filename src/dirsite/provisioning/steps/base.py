"""Base step interface for provisioning sagas."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from dirsite.errors.exceptions import TenantNotFoundError
from dirsite.models.enums import StepName
from dirsite.models.job import JobRecord
from dirsite.models.tenant import TenantSnapshot
from dirsite.provisioning.clock import Clock
from dirsite.provisioning.hosting import HostingServices
from dirsite.provisioning.refs import AnyStepRefs, StepRefs
from dirsite.provisioning.store import TenantStore


@dataclass
class StepContext:
    """Everything a step may touch while it runs."""

    job: JobRecord
    tenant: TenantSnapshot | None
    hosting: HostingServices
    tenants: TenantStore
    clock: Clock
    logger: Any
    site_base_domain: str

    def require_tenant(self) -> TenantSnapshot:
        if self.tenant is None:
            raise TenantNotFoundError(self.job.tenant_id)
        return self.tenant

    @property
    def hostname(self) -> str:
        return f"{self.require_tenant().domain}.{self.site_base_domain}"

    @property
    def site_url(self) -> str:
        return f"https://{self.hostname}"


class StepOutcome(BaseModel):
    """What a step hands back to the runner for persisting."""

    refs: AnyStepRefs | None = None
    compensation: dict[str, Any] = Field(default_factory=dict)


class BaseStep(ABC):
    """Abstract base class for saga steps."""

    name: StepName
    description: str = ""
    refs_model: type[StepRefs] | None = None

    @abstractmethod
    async def run(self, ctx: StepContext) -> StepOutcome:
        """Perform the forward action."""
        ...

    async def compensate(
        self,
        ctx: StepContext,
        refs: StepRefs | None,
        compensation: dict[str, Any],
    ) -> None:
        """Undo the forward action. Steps without side effects keep the no-op."""
        return None

    @property
    def compensable(self) -> bool:
        return type(self).compensate is not BaseStep.compensate

    def load_refs(self, external_refs: dict[str, Any]) -> StepRefs | None:
        """Re-read this step's references from a job's accumulated refs."""
        if self.refs_model is None:
            return None
        if not self.refs_model.owned_keys().issubset(external_refs):
            return None
        return self.refs_model.model_validate(external_refs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
