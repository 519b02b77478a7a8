from __future__ import annotations

from typing import TYPE_CHECKING

import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spotmark.db.base import Base, GUID, TimestampMixin

if TYPE_CHECKING:
    from .user import User


class SpotRow(TimestampMixin, Base):
    __tablename__ = "spots"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")

    # WGS84 viewport center.
    center_lat: Mapped[float] = mapped_column(sa.Float, nullable=False)
    center_lng: Mapped[float] = mapped_column(sa.Float, nullable=False)
    zoom_level: Mapped[float] = mapped_column(sa.Float, nullable=False)

    user: Mapped["User"] = relationship(back_populates="spots")

    __table_args__ = (sa.Index("ix_spots_user_created", "user_id", "created_at"),)
