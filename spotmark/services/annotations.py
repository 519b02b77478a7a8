from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from spotmark.core.errors import GeometryMismatchError
from spotmark.db.base import as_utc, utcnow
from spotmark.models.annotation import AnnotationRow
from spotmark.models.spot import SpotRow
from spotmark.schemas.annotation import (
    COMMON_FIELDS,
    GEOMETRY_KIND,
    MIN_POINTS,
    AccumulationZone,
    Annotation,
    AnnotationType,
    DepthPoint,
    Dropoff,
    Isobath,
    Note,
    SpawnZone,
    TargetZone,
    annotation_adapter,
    open_ring,
)
from spotmark.schemas.geo import GeoPoint
from spotmark.schemas.spot import Spot


# Never changed after creation; silently dropped from update payloads.
IMMUTABLE_ANNOTATION_FIELDS = frozenset(
    {"id", "type", "owner_id", "label", "created_at", "updated_at"}
)
IMMUTABLE_SPOT_FIELDS = frozenset({"id", "owner_id", "created_at", "updated_at"})

Geometry = GeoPoint | Sequence[GeoPoint]


def touch(previous: dt.datetime) -> dt.datetime:
    """Return a fresh updated_at strictly later than ``previous``."""

    previous = as_utc(previous)
    now = utcnow()
    if now > previous:
        return now
    return previous + dt.timedelta(microseconds=1)


def _position(type_: AnnotationType, geometry: Geometry) -> GeoPoint:
    if not isinstance(geometry, GeoPoint):
        raise GeometryMismatchError(f"{type_} needs a single GeoPoint")
    return geometry


def _points(type_: AnnotationType, geometry: Geometry) -> tuple[GeoPoint, ...]:
    if isinstance(geometry, GeoPoint) or not all(
        isinstance(p, GeoPoint) for p in geometry
    ):
        raise GeometryMismatchError(f"{type_} needs a sequence of GeoPoints")
    points = tuple(geometry)
    kind = GEOMETRY_KIND[type_]
    minimum = MIN_POINTS[kind]
    counted = open_ring(points) if kind == "polygon" else points
    if len(counted) < minimum:
        raise GeometryMismatchError(
            f"{type_} needs at least {minimum} points, got {len(counted)}"
        )
    return points


def create_draft(
    type_: AnnotationType,
    geometry: Geometry,
    label: str,
    owner_id: str,
    *,
    spot_id: uuid.UUID | None = None,
) -> Annotation:
    """Build a not-yet-persisted annotation with type-appropriate defaults."""

    now = utcnow()
    common: dict[str, Any] = {
        "owner_id": owner_id,
        "label": label,
        "spot_id": spot_id,
        "created_at": now,
        "updated_at": now,
    }
    match type_:
        case "target_zone":
            return TargetZone(position=_position(type_, geometry), **common)
        case "depth_point":
            return DepthPoint(position=_position(type_, geometry), **common)
        case "note":
            return Note(position=_position(type_, geometry), **common)
        case "isobath":
            return Isobath(points=_points(type_, geometry), **common)
        case "dropoff":
            return Dropoff(points=_points(type_, geometry), **common)
        case "spawn_zone":
            return SpawnZone(points=_points(type_, geometry), **common)
        case "accumulation_zone":
            return AccumulationZone(points=_points(type_, geometry), **common)
        case _:
            raise GeometryMismatchError(f"unknown annotation type: {type_!r}")


def apply_update(annotation: Annotation, changes: Mapping[str, Any]) -> Annotation:
    """Shallow-merge ``changes`` into a copy of ``annotation``.

    Identity fields and keys the variant does not define are ignored. The
    result is re-validated, so a bad value raises ``pydantic.ValidationError``.
    """

    model = type(annotation)
    data = annotation.model_dump()
    for key, value in changes.items():
        if key in IMMUTABLE_ANNOTATION_FIELDS or key not in model.model_fields:
            continue
        data[key] = value
    data["updated_at"] = touch(annotation.updated_at)
    return model.model_validate(data)


def apply_spot_update(spot: Spot, changes: Mapping[str, Any]) -> Spot:
    data = spot.model_dump()
    for key, value in changes.items():
        if key in IMMUTABLE_SPOT_FIELDS or key not in Spot.model_fields:
            continue
        data[key] = value
    data["updated_at"] = touch(spot.updated_at)
    return Spot.model_validate(data)


def variant_data(annotation: Annotation) -> dict[str, Any]:
    """JSON blob for the ``data`` column: geometry and variant fields."""

    return annotation.model_dump(mode="json", exclude=set(COMMON_FIELDS))


def annotation_from_row(row: AnnotationRow) -> Annotation:
    return annotation_adapter.validate_python(
        {
            **row.data,
            "id": row.id,
            "type": row.type,
            "owner_id": str(row.user_id),
            "label": row.label,
            "notes": row.notes,
            "spot_id": row.spot_id,
            "created_at": as_utc(row.created_at),
            "updated_at": as_utc(row.updated_at),
        }
    )


def write_annotation_row(row: AnnotationRow, annotation: Annotation) -> None:
    """Copy the mutable parts of ``annotation`` onto ``row``."""

    row.notes = annotation.notes
    row.spot_id = annotation.spot_id
    row.data = variant_data(annotation)
    row.updated_at = annotation.updated_at


def spot_from_row(row: SpotRow) -> Spot:
    return Spot(
        id=row.id,
        owner_id=str(row.user_id),
        name=row.name,
        description=row.description,
        center=GeoPoint(lng=row.center_lng, lat=row.center_lat),
        zoom_level=row.zoom_level,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def write_spot_row(row: SpotRow, spot: Spot) -> None:
    row.name = spot.name
    row.description = spot.description
    row.center_lat = spot.center.lat
    row.center_lng = spot.center.lng
    row.zoom_level = spot.zoom_level
    row.updated_at = spot.updated_at
