from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from spotmark.db.base import utcnow
from spotmark.schemas.geo import GeoPoint


class Spot(BaseModel):
    """A named, saved map viewport that annotations can be filed under."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: str = ""
    name: str = Field(min_length=1)
    description: str = ""
    center: GeoPoint
    zoom_level: float = Field(default=14.0, ge=0.0, le=24.0)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_timestamps(self):
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self


spot_list_adapter: TypeAdapter[list[Spot]] = TypeAdapter(list[Spot])
