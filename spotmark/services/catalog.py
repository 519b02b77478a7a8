"""Display metadata per annotation type and drawing tool."""

from __future__ import annotations

from typing import Literal

from spotmark.schemas.annotation import AnnotationType, Confidence, Season


Tool = Literal[
    "pointer",
    "target_zone",
    "depth_point",
    "isobath",
    "dropoff",
    "spawn_zone",
    "accumulation_zone",
    "note",
]

ANNOTATION_NAMES: dict[AnnotationType, str] = {
    "target_zone": "Target Zone",
    "depth_point": "Depth Point",
    "isobath": "Isobath Line",
    "dropoff": "Drop-off",
    "spawn_zone": "Spawning Zone",
    "accumulation_zone": "Accumulation Zone",
    "note": "Note",
}

ANNOTATION_COLORS: dict[AnnotationType, str] = {
    "target_zone": "#ff6b35",
    "depth_point": "#4da6ff",
    "isobath": "#00c9a7",
    "dropoff": "#ff4444",
    "spawn_zone": "#4caf50",
    "accumulation_zone": "#e040fb",
    "note": "#ffffff",
}

DRAWING_INSTRUCTIONS: dict[Tool, str] = {
    "pointer": "",
    "target_zone": "Click on the map to place a target zone",
    "depth_point": "Click on the map to place a depth point",
    "isobath": "Click to add points. Double-click to finish the line.",
    "dropoff": "Click to add points. Double-click to finish the line.",
    "spawn_zone": "Click to add vertices. Double-click to close the polygon.",
    "accumulation_zone": "Click to add vertices. Double-click to close the polygon.",
    "note": "Click on the map to place a note",
}

SEASON_NAMES: dict[Season, str] = {
    "spring": "Spring",
    "summer": "Summer",
    "autumn": "Autumn",
    "winter": "Winter",
    "all": "All year",
}

CONFIDENCE_NAMES: dict[Confidence, str] = {
    "confirmed": "Confirmed",
    "likely": "Likely",
    "speculative": "Speculative",
}
