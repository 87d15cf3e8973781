"""create destinations and destination_import_jobs tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "destinations",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(length=255), nullable=False),
        sa.Column("name_th", sa.String(length=100), nullable=False),
        sa.Column("name_en", sa.String(length=100), nullable=False),
        sa.Column("description_th", sa.Text(), nullable=False),
        sa.Column("description_en", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("budget_band", sa.String(length=16), nullable=False),
        sa.Column("district", sa.String(length=50), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("mood_tags", sa.JSON(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("instagram_score", sa.Integer(), nullable=False),
        sa.Column("opening_hours", sa.JSON(), nullable=False),
        sa.Column("transport_access", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("import_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_destinations"),
        sa.UniqueConstraint("identity_key", name="uq_destinations_identity_key"),
    )
    op.create_index("ix_destinations_category", "destinations", ["category"], unique=False)
    op.create_index("ix_destinations_district", "destinations", ["district"], unique=False)
    op.create_index("ix_destinations_is_active", "destinations", ["is_active"], unique=False)

    op.create_table(
        "destination_import_jobs",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_hash", sa.String(length=64), nullable=True),
        sa.Column("result_payload", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_destination_import_jobs"),
    )
    op.create_index(
        "ix_destination_import_jobs_status",
        "destination_import_jobs",
        ["status"],
        unique=False,
    )
    op.create_index(
        "ix_destination_import_jobs_expires_at",
        "destination_import_jobs",
        ["expires_at"],
        unique=False,
    )
    op.create_index(
        "ix_destination_import_jobs_file_hash",
        "destination_import_jobs",
        ["file_hash"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_destination_import_jobs_file_hash", table_name="destination_import_jobs")
    op.drop_index("ix_destination_import_jobs_expires_at", table_name="destination_import_jobs")
    op.drop_index("ix_destination_import_jobs_status", table_name="destination_import_jobs")
    op.drop_table("destination_import_jobs")

    op.drop_index("ix_destinations_is_active", table_name="destinations")
    op.drop_index("ix_destinations_district", table_name="destinations")
    op.drop_index("ix_destinations_category", table_name="destinations")
    op.drop_table("destinations")
