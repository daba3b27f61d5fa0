"""Tenant content repositories."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dirsite.db.models.tenant import CategoryRow, ListingRow, TenantBrandingRow, TenantRow
from dirsite.repositories.base import BaseRepository


class TenantRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TenantRow)

    async def get(self, tenant_id: str) -> TenantRow | None:
        return await self.get_by_id("tenant_id", tenant_id)


class TenantBrandingRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TenantBrandingRow)

    async def get_by_tenant(self, tenant_id: str) -> TenantBrandingRow | None:
        rows = await self.list_by_field("tenant_id", tenant_id)
        return rows[0] if rows else None


class CategoryRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, CategoryRow)

    async def list_by_tenant(self, tenant_id: str) -> list[CategoryRow]:
        """Categories in display order."""
        stmt = (
            select(CategoryRow)
            .where(CategoryRow.tenant_id == tenant_id)
            .order_by(CategoryRow.sort_order, CategoryRow.slug)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class ListingRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ListingRow)

    async def list_by_tenant(self, tenant_id: str) -> list[ListingRow]:
        return await self.list_by_field("tenant_id", tenant_id)
