from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_listing_lifecycle"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
    )

    op.create_table(
        "properties",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.String(length=300), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("manager_email", sa.String(length=320), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_properties_organization_id", "properties", ["organization_id"])

    op.create_table(
        "units",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("unit_number", sa.String(length=50), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("bathrooms", sa.Integer(), nullable=True),
        sa.Column("square_footage", sa.Integer(), nullable=True),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("listing_id", sa.String(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("listing_id", name="uq_units_listing_id"),
    )
    op.create_index("ix_units_property_id", "units", ["property_id"])

    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("availability_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),

        sa.Column("maintenance_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("maintenance_previous_status", sa.String(length=30), nullable=True),
        sa.Column("maintenance_request_id", sa.String(), nullable=True),
        sa.Column("maintenance_estimated_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("maintenance_reason", sa.String(length=500), nullable=True),
        *_audit_columns(),
        # at most one listing per unit
        sa.UniqueConstraint("unit_id", name="uq_listings_unit_id"),
    )
    op.create_index("ix_listings_organization_id", "listings", ["organization_id"])
    op.create_index("ix_listings_status", "listings", ["status"])
    op.create_index("ix_listings_availability_date", "listings", ["availability_date"])
    op.create_index("ix_listings_expiration_date", "listings", ["expiration_date"])

    op.create_table(
        "leases",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("tenant_email", sa.String(length=320), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_leases_unit_id", "leases", ["unit_id"])

    op.create_table(
        "tenant_applications",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("applicant_email", sa.String(length=320), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("decision_reason", sa.String(length=500), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_tenant_applications_unit_id", "tenant_applications", ["unit_id"])
    op.create_index("ix_tenant_applications_status", "tenant_applications", ["status"])

    op.create_table(
        "maintenance_requests",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_maintenance_requests_unit_id", "maintenance_requests", ["unit_id"])

    op.create_table(
        "listing_audit_entries",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(), nullable=False),
        sa.Column("listing_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=40), nullable=False),
        sa.Column("previous_status", sa.String(length=30), nullable=True),
        sa.Column("new_status", sa.String(length=30), nullable=False),
        sa.Column("actor_id", sa.String(length=200), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_listing_audit_entries_unit_id", "listing_audit_entries", ["unit_id"])
    op.create_index("ix_listing_audit_entries_listing_id", "listing_audit_entries", ["listing_id"])
    op.create_index("ix_listing_audit_entries_action", "listing_audit_entries", ["action"])
    op.create_index("ix_listing_audit_entries_created_at", "listing_audit_entries", ["created_at"])


def downgrade() -> None:
    op.drop_table("listing_audit_entries")
    op.drop_table("maintenance_requests")
    op.drop_table("tenant_applications")
    op.drop_table("leases")
    op.drop_table("listings")
    op.drop_table("units")
    op.drop_table("properties")
    op.drop_table("organizations")
