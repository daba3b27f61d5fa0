"""Read-only tenant snapshot handed to provisioning steps."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from dirsite.models.enums import TenantStatus


class CategorySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    slug: str
    is_active: bool = True


class ListingSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing_id: str
    category_id: str
    title: str
    slug: str
    status: str
    search_text: str = ""


class BrandingSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    logo_url: str | None = None
    primary_color: str
    secondary_color: str
    accent_color: str
    font_family: str


class TenantSnapshot(BaseModel):
    """Tenant state captured once at the start of a provisioning job."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    name: str
    domain: str
    status: TenantStatus
    published_at: datetime | None = None
    categories: tuple[CategorySummary, ...] = ()
    listings: tuple[ListingSummary, ...] = ()
    branding: BrandingSummary | None = None

    @property
    def active_categories(self) -> list[CategorySummary]:
        return [c for c in self.categories if c.is_active]
