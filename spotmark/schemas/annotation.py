"""Annotation records.

The seven variants form a closed union discriminated by ``type``. Geometry is
either a single ``position`` or an ordered ``points`` sequence; polygon
variants keep an open ring (no repeated closing vertex).
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Annotated, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from spotmark.db.base import utcnow
from spotmark.schemas.geo import GeoPoint


AnnotationType = Literal[
    "target_zone",
    "depth_point",
    "isobath",
    "dropoff",
    "spawn_zone",
    "accumulation_zone",
    "note",
]
GeometryKind = Literal["point", "line", "polygon"]
Season = Literal["spring", "summer", "autumn", "winter", "all"]
Confidence = Literal["confirmed", "likely", "speculative"]

# Canonical order, used for listings and grouping.
ANNOTATION_TYPES: tuple[AnnotationType, ...] = (
    "target_zone",
    "depth_point",
    "isobath",
    "dropoff",
    "spawn_zone",
    "accumulation_zone",
    "note",
)

GEOMETRY_KIND: dict[AnnotationType, GeometryKind] = {
    "target_zone": "point",
    "depth_point": "point",
    "isobath": "line",
    "dropoff": "line",
    "spawn_zone": "polygon",
    "accumulation_zone": "polygon",
    "note": "point",
}

MIN_POINTS: dict[GeometryKind, int] = {"point": 1, "line": 2, "polygon": 3}

# Columns shared by every variant; everything else lives in the data blob.
COMMON_FIELDS = frozenset(
    {"id", "type", "owner_id", "label", "notes", "spot_id", "created_at", "updated_at"}
)


class _AnnotationFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: str = ""
    label: str = Field(min_length=1, max_length=10)
    notes: str = ""
    spot_id: uuid.UUID | None = None
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_timestamps(self):
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self


def open_ring(points: tuple[GeoPoint, ...]) -> tuple[GeoPoint, ...]:
    """Drop a closing vertex that repeats the first one."""

    if len(points) > 1 and points[0] == points[-1]:
        return points[:-1]
    return points


def _open_ring(points: tuple[GeoPoint, ...]) -> tuple[GeoPoint, ...]:
    points = open_ring(points)
    if len(points) < MIN_POINTS["polygon"]:
        raise ValueError("polygon needs at least 3 distinct vertices")
    return points


class TargetZone(_AnnotationFields):
    type: Literal["target_zone"] = "target_zone"
    position: GeoPoint
    title: str = ""
    depth: float = 0.0


class DepthPoint(_AnnotationFields):
    type: Literal["depth_point"] = "depth_point"
    position: GeoPoint
    depth: float = 0.0


class Isobath(_AnnotationFields):
    type: Literal["isobath"] = "isobath"
    points: tuple[GeoPoint, ...] = Field(min_length=2)
    depth: float = 0.0


class Dropoff(_AnnotationFields):
    type: Literal["dropoff"] = "dropoff"
    points: tuple[GeoPoint, ...] = Field(min_length=2)
    shallow_depth: float = 0.0
    deep_depth: float = 0.0


class SpawnZone(_AnnotationFields):
    type: Literal["spawn_zone"] = "spawn_zone"
    points: tuple[GeoPoint, ...] = Field(min_length=3)
    species: str = ""
    season: Season = "all"
    confidence: Confidence = "speculative"

    @field_validator("points")
    @classmethod
    def drop_closing_vertex(cls, points: tuple[GeoPoint, ...]) -> tuple[GeoPoint, ...]:
        return _open_ring(points)


class AccumulationZone(_AnnotationFields):
    type: Literal["accumulation_zone"] = "accumulation_zone"
    points: tuple[GeoPoint, ...] = Field(min_length=3)
    food_type: str = ""
    season: Season = "all"
    confidence: Confidence = "speculative"

    @field_validator("points")
    @classmethod
    def drop_closing_vertex(cls, points: tuple[GeoPoint, ...]) -> tuple[GeoPoint, ...]:
        return _open_ring(points)


class Note(_AnnotationFields):
    type: Literal["note"] = "note"
    position: GeoPoint


Annotation = Annotated[
    Union[
        TargetZone,
        DepthPoint,
        Isobath,
        Dropoff,
        SpawnZone,
        AccumulationZone,
        Note,
    ],
    Field(discriminator="type"),
]

annotation_adapter: TypeAdapter[Annotation] = TypeAdapter(Annotation)
annotation_list_adapter: TypeAdapter[list[Annotation]] = TypeAdapter(list[Annotation])
