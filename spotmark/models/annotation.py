from __future__ import annotations

from typing import TYPE_CHECKING

import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spotmark.db.base import Base, GUID, TimestampMixin

if TYPE_CHECKING:
    from .user import User


class AnnotationRow(TimestampMixin, Base):
    __tablename__ = "annotations"

    # Client-generated so optimistic inserts keep their id.
    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    spot_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        sa.ForeignKey("spots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    label: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    notes: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")

    # Geometry plus variant-specific fields; new fields need no migration.
    data: Mapped[dict[str, object]] = mapped_column(sa.JSON, nullable=False)

    user: Mapped["User"] = relationship(back_populates="annotations")

    __table_args__ = (
        sa.UniqueConstraint(
            "user_id",
            "type",
            "label",
            name="uq_annotations_user_type_label",
        ),
        sa.Index("ix_annotations_user_created", "user_id", "created_at"),
    )
