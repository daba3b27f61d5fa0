"""Provisioning job repository."""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dirsite.db.models.job import ProvisioningJobRow
from dirsite.repositories.base import BaseRepository


class JobRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ProvisioningJobRow)

    async def get(self, job_id: str) -> ProvisioningJobRow | None:
        return await self.get_by_id("job_id", job_id)

    async def list_for_tenant(
        self,
        tenant_id: str | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[ProvisioningJobRow]:
        """Jobs newest first, optionally filtered by tenant and status."""
        stmt = select(ProvisioningJobRow)
        if tenant_id is not None:
            stmt = stmt.where(ProvisioningJobRow.tenant_id == tenant_id)
        if statuses is not None:
            stmt = stmt.where(ProvisioningJobRow.status.in_([str(s) for s in statuses]))
        stmt = stmt.order_by(ProvisioningJobRow.created_at.desc(), ProvisioningJobRow.job_id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def compare_and_set(
        self,
        job_id: str,
        from_statuses: Iterable[str],
        values: dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the job is currently in one of ``from_statuses``.

        Runs as a single UPDATE so a concurrent cancel cannot interleave
        between the status check and the write.
        """
        stmt = (
            update(ProvisioningJobRow)
            .where(
                ProvisioningJobRow.job_id == job_id,
                ProvisioningJobRow.status.in_([str(s) for s in from_statuses]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
