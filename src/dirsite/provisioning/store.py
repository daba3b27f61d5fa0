"""Session-per-call stores the orchestrator persists through.

Each method opens its own session and commits before returning, so every
call is atomic on its own and nothing is held open across a step.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dirsite.errors.exceptions import NotFoundError
from dirsite.models.enums import TenantStatus
from dirsite.models.job import JobRecord
from dirsite.models.tenant import (
    BrandingSummary,
    CategorySummary,
    ListingSummary,
    TenantSnapshot,
)
from dirsite.repositories.job_repo import JobRepository
from dirsite.repositories.tenant_repo import (
    CategoryRepository,
    ListingRepository,
    TenantBrandingRepository,
    TenantRepository,
)

# JobRecord field -> column name where they differ
_COLUMN_NAMES = {"id": "job_id", "type": "job_type"}


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    return {_COLUMN_NAMES.get(key, key): value for key, value in fields.items()}


class ProvisioningJobStore:
    """Persistence for provisioning job records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, **fields: Any) -> JobRecord:
        async with self._session_factory() as session:
            repo = JobRepository(session)
            row = await repo.create(**_to_columns(fields))
            await session.commit()
            return JobRecord.model_validate(row)

    async def find_unique(self, job_id: str) -> JobRecord | None:
        async with self._session_factory() as session:
            row = await JobRepository(session).get(job_id)
            return JobRecord.model_validate(row) if row else None

    async def find_many(
        self,
        tenant_id: str | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[JobRecord]:
        """Matching jobs, newest first by ``created_at``."""
        async with self._session_factory() as session:
            rows = await JobRepository(session).list_for_tenant(tenant_id, statuses)
            return [JobRecord.model_validate(row) for row in rows]

    async def update(self, job_id: str, **fields: Any) -> JobRecord:
        async with self._session_factory() as session:
            repo = JobRepository(session)
            row = await repo.get(job_id)
            if row is None:
                raise NotFoundError("Job", job_id)
            await repo.update(row, **_to_columns(fields))
            await session.commit()
            return JobRecord.model_validate(row)

    async def transition(
        self,
        job_id: str,
        from_statuses: Iterable[str],
        **fields: Any,
    ) -> JobRecord | None:
        """Guarded update: applies ``fields`` only from one of ``from_statuses``.

        Returns the updated record, or None when the job is missing or was
        in some other status.
        """
        async with self._session_factory() as session:
            applied = await JobRepository(session).compare_and_set(
                job_id, from_statuses, _to_columns(fields)
            )
            await session.commit()
        if not applied:
            return None
        return await self.find_unique(job_id)


class TenantStore:
    """Read access to tenant content plus the two fields provisioning writes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_unique(self, tenant_id: str) -> TenantSnapshot | None:
        async with self._session_factory() as session:
            row = await TenantRepository(session).get(tenant_id)
            if row is None:
                return None
            categories = await CategoryRepository(session).list_by_tenant(tenant_id)
            listings = await ListingRepository(session).list_by_tenant(tenant_id)
            branding = await TenantBrandingRepository(session).get_by_tenant(tenant_id)
            return TenantSnapshot(
                tenant_id=row.tenant_id,
                name=row.name,
                domain=row.domain,
                status=row.status,
                published_at=row.published_at,
                categories=tuple(
                    CategorySummary(
                        category_id=c.category_id,
                        name=c.name,
                        slug=c.slug,
                        is_active=c.is_active,
                    )
                    for c in categories
                ),
                listings=tuple(
                    ListingSummary(
                        listing_id=item.listing_id,
                        category_id=item.category_id,
                        title=item.title,
                        slug=item.slug,
                        status=item.status,
                        search_text=item.search_text or "",
                    )
                    for item in listings
                ),
                branding=(
                    BrandingSummary(
                        logo_url=branding.logo_url,
                        primary_color=branding.primary_color,
                        secondary_color=branding.secondary_color,
                        accent_color=branding.accent_color,
                        font_family=branding.font_family,
                    )
                    if branding
                    else None
                ),
            )

    async def update(
        self,
        tenant_id: str,
        status: TenantStatus,
        published_at: datetime | None,
    ) -> None:
        async with self._session_factory() as session:
            repo = TenantRepository(session)
            row = await repo.get(tenant_id)
            if row is None:
                raise NotFoundError("Tenant", tenant_id)
            await repo.update(row, status=str(status), published_at=published_at)
            await session.commit()
