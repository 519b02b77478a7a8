"""GeoJSON output for the map renderer, plus short list summaries."""

from __future__ import annotations

from typing import Any

from spotmark.schemas.annotation import Annotation
from spotmark.services.catalog import (
    ANNOTATION_COLORS,
    ANNOTATION_NAMES,
    CONFIDENCE_NAMES,
    SEASON_NAMES,
)
from spotmark.services.projection import GroupedView


def _fmt_depth(value: float) -> str:
    return f"{value:g}m"


def summarize(annotation: Annotation) -> str:
    match annotation.type:
        case "target_zone":
            depth = _fmt_depth(annotation.depth) if annotation.depth else ""
            return " · ".join(p for p in (annotation.title, depth) if p)
        case "depth_point" | "isobath":
            return _fmt_depth(annotation.depth)
        case "dropoff":
            return f"{annotation.shallow_depth:g}→{annotation.deep_depth:g}m"
        case "spawn_zone":
            return " · ".join(
                p for p in (annotation.species, SEASON_NAMES[annotation.season]) if p
            )
        case "accumulation_zone":
            return " · ".join(
                p for p in (annotation.food_type, SEASON_NAMES[annotation.season]) if p
            )
        case "note":
            return annotation.notes[:40]


def to_feature(annotation: Annotation) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "id": str(annotation.id),
        "type": annotation.type,
        "type_name": ANNOTATION_NAMES[annotation.type],
        "label": annotation.label,
        "color": ANNOTATION_COLORS[annotation.type],
        "summary": summarize(annotation),
    }
    match annotation.type:
        case "target_zone" | "depth_point" | "note":
            geometry = {"type": "Point", "coordinates": annotation.position.coordinates()}
        case "isobath" | "dropoff":
            geometry = {
                "type": "LineString",
                "coordinates": [p.coordinates() for p in annotation.points],
            }
        case "spawn_zone" | "accumulation_zone":
            properties["confidence"] = CONFIDENCE_NAMES[annotation.confidence]
            ring = [p.coordinates() for p in annotation.points]
            # Records keep an open ring; GeoJSON wants it closed.
            geometry = {"type": "Polygon", "coordinates": [ring + [ring[0]]]}
    return {"type": "Feature", "geometry": geometry, "properties": properties}


def to_feature_collection(view: GroupedView) -> dict[str, Any]:
    """Features for every annotation in a visible type group."""

    return {
        "type": "FeatureCollection",
        "features": [to_feature(a) for a in view.visible_annotations()],
    }
