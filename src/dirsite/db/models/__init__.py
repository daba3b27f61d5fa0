"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from dirsite.db.models.tenant import CategoryRow, ListingRow, TenantBrandingRow, TenantRow
from dirsite.db.models.job import ProvisioningJobRow

__all__ = [
    "TenantRow",
    "TenantBrandingRow",
    "CategoryRow",
    "ListingRow",
    "ProvisioningJobRow",
]
