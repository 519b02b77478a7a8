"""SQLAlchemy ORM models.

Importing this module should register all tables on Base.metadata.
"""

from __future__ import annotations

from spotmark.models.annotation import AnnotationRow
from spotmark.models.spot import SpotRow
from spotmark.models.user import User

__all__ = [
    "AnnotationRow",
    "SpotRow",
    "User",
]
