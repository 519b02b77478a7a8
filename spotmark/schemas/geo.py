from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """WGS84 longitude/latitude pair, in degrees."""

    model_config = ConfigDict(frozen=True)

    lng: float = Field(ge=-180.0, le=180.0)
    lat: float = Field(ge=-90.0, le=90.0)

    def coordinates(self) -> list[float]:
        # GeoJSON order.
        return [self.lng, self.lat]
