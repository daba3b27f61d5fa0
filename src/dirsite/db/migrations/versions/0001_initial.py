"""Initial schema: tenants, content tables and provisioning jobs.

Revision ID: 0001_initial
Revises:
"""

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("tenant_id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False, unique=True),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "tenant_branding",
        sa.Column("branding_id", sa.String(128), primary_key=True),
        sa.Column(
            "tenant_id", sa.String(128),
            sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        sa.Column("logo_url", sa.String(2000), nullable=True),
        sa.Column("primary_color", sa.String(20), nullable=False),
        sa.Column("secondary_color", sa.String(20), nullable=False),
        sa.Column("accent_color", sa.String(20), nullable=False),
        sa.Column("font_family", sa.String(200), nullable=False),
    )
    op.create_table(
        "categories",
        sa.Column("category_id", sa.String(128), primary_key=True),
        sa.Column(
            "tenant_id", sa.String(128),
            sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_category_tenant_slug"),
    )
    op.create_table(
        "listings",
        sa.Column("listing_id", sa.String(128), primary_key=True),
        sa.Column(
            "tenant_id", sa.String(128),
            sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("category_id", sa.String(128), sa.ForeignKey("categories.category_id"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("slug", sa.String(500), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("search_text", sa.Text, nullable=False),
        sa.Column("data", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "provisioning_jobs",
        sa.Column("job_id", sa.String(128), primary_key=True),
        sa.Column(
            "tenant_id", sa.String(128),
            sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, index=True),
        sa.Column("progress", sa.Integer, nullable=False),
        sa.Column("current_step", sa.String(100), nullable=False),
        sa.Column("steps_total", sa.Integer, nullable=False),
        sa.Column("steps_completed", sa.Integer, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("external_refs", sa.JSON, nullable=False),
        sa.Column("compensation_data", sa.JSON, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("provisioning_jobs")
    op.drop_table("listings")
    op.drop_table("categories")
    op.drop_table("tenant_branding")
    op.drop_table("tenants")
