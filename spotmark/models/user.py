from __future__ import annotations

from typing import TYPE_CHECKING

import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spotmark.db.base import Base, GUID, TimestampMixin

if TYPE_CHECKING:
    from .annotation import AnnotationRow
    from .spot import SpotRow


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)

    # Login identity.
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    hashed_password: Mapped[str] = mapped_column(sa.Text, nullable=False)

    spots: Mapped[list["SpotRow"]] = relationship(back_populates="user")
    annotations: Mapped[list["AnnotationRow"]] = relationship(back_populates="user")
