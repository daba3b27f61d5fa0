"""Hosting providers used by provisioning steps.

The abstract providers describe the calls a step makes against the build,
CDN, search and domain services. The ``Simulated*`` implementations keep
their state in memory and spend configurable (clock-driven) latency per call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from dirsite.errors.exceptions import HostingError
from dirsite.models.tenant import ListingSummary, TenantSnapshot
from dirsite.provisioning.clock import Clock
from dirsite.services.id_generator import generate_id


@dataclass(frozen=True)
class Deployment:
    deployment_id: str
    build_id: str
    url: str


class SiteBuilder(ABC):
    provider: str = "builder"

    @abstractmethod
    async def build(self, tenant: TenantSnapshot) -> str:
        """Render the tenant's static site. Returns the build id."""
        ...

    @abstractmethod
    async def delete_build(self, build_id: str) -> None:
        ...


class CdnProvider(ABC):
    provider: str = "cdn"

    @abstractmethod
    async def deploy(self, build_id: str, hostname: str) -> Deployment:
        """Publish a build under ``hostname``."""
        ...

    @abstractmethod
    async def undeploy(self, hostname: str) -> None:
        ...

    @abstractmethod
    async def current(self, hostname: str) -> Deployment | None:
        """The deployment ``hostname`` currently serves, if any."""
        ...

    @abstractmethod
    async def promote(self, hostname: str, deployment_id: str) -> Deployment:
        """Serve an earlier deployment under ``hostname`` again."""
        ...


class SearchProvider(ABC):
    provider: str = "search"

    @abstractmethod
    async def create_index(self, index_id: str, documents: Sequence[ListingSummary]) -> int:
        """Create (or replace) an index and load documents. Returns the document count."""
        ...

    @abstractmethod
    async def drop_index(self, index_id: str) -> None:
        ...

    @abstractmethod
    async def snapshot_index(self, index_id: str) -> str | None:
        """Copy an existing index. Returns the snapshot id, or None if there is no index."""
        ...

    @abstractmethod
    async def restore_index(self, index_id: str, snapshot_id: str) -> None:
        ...

    @abstractmethod
    async def drop_snapshot(self, snapshot_id: str) -> None:
        ...


class DomainProvider(ABC):
    provider: str = "domain"

    @abstractmethod
    async def bind(self, hostname: str, target_url: str) -> None:
        ...

    @abstractmethod
    async def release(self, hostname: str) -> None:
        ...

    @abstractmethod
    async def current(self, hostname: str) -> str | None:
        """The target ``hostname`` is bound to, if any."""
        ...


@dataclass
class HostingServices:
    builder: SiteBuilder
    cdn: CdnProvider
    search: SearchProvider
    domains: DomainProvider


# --- In-memory simulation ---


class SimulatedSiteBuilder(SiteBuilder):
    def __init__(self, clock: Clock, delay: float = 0.0, id_factory: Callable[[str], str] = generate_id):
        self._clock = clock
        self._delay = delay
        self._id_factory = id_factory
        self.builds: dict[str, str] = {}

    async def build(self, tenant: TenantSnapshot) -> str:
        await self._clock.sleep(self._delay)
        build_id = self._id_factory("build-")
        self.builds[build_id] = tenant.tenant_id
        return build_id

    async def delete_build(self, build_id: str) -> None:
        await self._clock.sleep(self._delay)
        self.builds.pop(build_id, None)


class SimulatedCdnProvider(CdnProvider):
    def __init__(self, clock: Clock, delay: float = 0.0, id_factory: Callable[[str], str] = generate_id):
        self._clock = clock
        self._delay = delay
        self._id_factory = id_factory
        self.deployments: dict[str, Deployment] = {}
        # Every deployment ever made, so an earlier one can be promoted again
        self.history: dict[str, Deployment] = {}

    async def deploy(self, build_id: str, hostname: str) -> Deployment:
        await self._clock.sleep(self._delay)
        if not build_id:
            raise HostingError(self.provider, "no build to deploy")
        deployment = Deployment(
            deployment_id=self._id_factory("dpl-"),
            build_id=build_id,
            url=f"https://{hostname}",
        )
        self.deployments[hostname] = deployment
        self.history[deployment.deployment_id] = deployment
        return deployment

    async def undeploy(self, hostname: str) -> None:
        await self._clock.sleep(self._delay)
        self.deployments.pop(hostname, None)

    async def current(self, hostname: str) -> Deployment | None:
        return self.deployments.get(hostname)

    async def promote(self, hostname: str, deployment_id: str) -> Deployment:
        await self._clock.sleep(self._delay)
        deployment = self.history.get(deployment_id)
        if deployment is None:
            raise HostingError(self.provider, f"unknown deployment {deployment_id}")
        self.deployments[hostname] = deployment
        return deployment


class SimulatedSearchProvider(SearchProvider):
    def __init__(self, clock: Clock, delay: float = 0.0, id_factory: Callable[[str], str] = generate_id):
        self._clock = clock
        self._delay = delay
        self._id_factory = id_factory
        self.indexes: dict[str, list[str]] = {}
        self.snapshots: dict[str, list[str]] = {}

    async def create_index(self, index_id: str, documents: Sequence[ListingSummary]) -> int:
        await self._clock.sleep(self._delay)
        self.indexes[index_id] = [doc.listing_id for doc in documents]
        return len(documents)

    async def drop_index(self, index_id: str) -> None:
        await self._clock.sleep(self._delay)
        self.indexes.pop(index_id, None)

    async def snapshot_index(self, index_id: str) -> str | None:
        if index_id not in self.indexes:
            return None
        snapshot_id = self._id_factory("snap-")
        self.snapshots[snapshot_id] = list(self.indexes[index_id])
        return snapshot_id

    async def restore_index(self, index_id: str, snapshot_id: str) -> None:
        await self._clock.sleep(self._delay)
        documents = self.snapshots.pop(snapshot_id, None)
        if documents is None:
            raise HostingError(self.provider, f"unknown snapshot {snapshot_id}")
        self.indexes[index_id] = documents

    async def drop_snapshot(self, snapshot_id: str) -> None:
        self.snapshots.pop(snapshot_id, None)


class SimulatedDomainProvider(DomainProvider):
    def __init__(self, clock: Clock, delay: float = 0.0):
        self._clock = clock
        self._delay = delay
        self.bindings: dict[str, str] = {}

    async def bind(self, hostname: str, target_url: str) -> None:
        await self._clock.sleep(self._delay)
        bound = self.bindings.get(hostname)
        if bound is not None and bound != target_url:
            raise HostingError(self.provider, f"{hostname} is bound to {bound}")
        self.bindings[hostname] = target_url

    async def release(self, hostname: str) -> None:
        await self._clock.sleep(self._delay)
        self.bindings.pop(hostname, None)

    async def current(self, hostname: str) -> str | None:
        return self.bindings.get(hostname)


@dataclass
class HostingDelays:
    build: float = 0.0
    cdn: float = 0.0
    search: float = 0.0
    domain: float = 0.0


def simulated_hosting(
    clock: Clock,
    delays: HostingDelays | None = None,
    id_factory: Callable[[str], str] = generate_id,
) -> HostingServices:
    delays = delays or HostingDelays()
    return HostingServices(
        builder=SimulatedSiteBuilder(clock, delays.build, id_factory),
        cdn=SimulatedCdnProvider(clock, delays.cdn, id_factory),
        search=SimulatedSearchProvider(clock, delays.search, id_factory),
        domains=SimulatedDomainProvider(clock, delays.domain),
    )
