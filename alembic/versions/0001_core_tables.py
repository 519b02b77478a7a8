"""Create users, spots and annotations.

Revision ID: 0001_core_tables
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_core_tables"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type() -> sa.types.TypeEngine:
    """UUID on PostgreSQL, VARCHAR(36) on SQLite."""

    return sa.String(36).with_variant(postgresql.UUID(as_uuid=True), "postgresql")


def upgrade() -> None:
    uuid_t = _uuid_type()

    op.create_table(
        "users",
        sa.Column("id", uuid_t, primary_key=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "spots",
        sa.Column("id", uuid_t, primary_key=True, nullable=False),
        sa.Column("user_id", uuid_t, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("center_lat", sa.Float(), nullable=False),
        sa.Column("center_lng", sa.Float(), nullable=False),
        sa.Column("zoom_level", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_spots_user_id", "spots", ["user_id"])
    op.create_index("ix_spots_user_created", "spots", ["user_id", "created_at"])

    op.create_table(
        "annotations",
        sa.Column("id", uuid_t, primary_key=True, nullable=False),
        sa.Column("user_id", uuid_t, nullable=False),
        sa.Column("spot_id", uuid_t, nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("label", sa.String(10), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["spot_id"], ["spots.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "user_id", "type", "label", name="uq_annotations_user_type_label"
        ),
    )
    op.create_index("ix_annotations_user_id", "annotations", ["user_id"])
    op.create_index("ix_annotations_spot_id", "annotations", ["spot_id"])
    op.create_index(
        "ix_annotations_user_created", "annotations", ["user_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_annotations_user_created", table_name="annotations")
    op.drop_index("ix_annotations_spot_id", table_name="annotations")
    op.drop_index("ix_annotations_user_id", table_name="annotations")
    op.drop_table("annotations")
    op.drop_index("ix_spots_user_created", table_name="spots")
    op.drop_index("ix_spots_user_id", table_name="spots")
    op.drop_table("spots")
    op.drop_table("users")
