"""Turns map clicks into finalized annotation geometry.

A ``DrawingSession`` is owned by whoever handles map events and is passed
explicitly to the code that needs it. Point tools finalize on a single click;
line and polygon tools collect clicks until a double-click with enough
points. Every change to the collected points is reported as a GeoJSON preview.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any, Literal

from spotmark.schemas.annotation import (
    GEOMETRY_KIND,
    MIN_POINTS,
    AnnotationType,
    GeometryKind,
    open_ring,
)
from spotmark.schemas.geo import GeoPoint
from spotmark.services.catalog import DRAWING_INSTRUCTIONS, Tool


logger = logging.getLogger(__name__)

DrawingState = Literal["idle", "collecting"]
FeatureCollection = dict[str, Any]


@dataclasses.dataclass(frozen=True, slots=True)
class FinalizedGeometry:
    type: AnnotationType
    geometry: GeoPoint | tuple[GeoPoint, ...]


def empty_feature_collection() -> FeatureCollection:
    return {"type": "FeatureCollection", "features": []}


def preview_features(
    points: tuple[GeoPoint, ...], kind: GeometryKind | None
) -> FeatureCollection:
    if not points:
        return empty_feature_collection()
    features: list[dict[str, Any]] = [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": p.coordinates()},
            "properties": {},
        }
        for p in points
    ]
    if len(points) >= 2:
        coords = [p.coordinates() for p in points]
        if kind == "polygon" and len(points) >= MIN_POINTS["polygon"]:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [coords + [coords[0]]]},
                    "properties": {},
                }
            )
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": coords},
                "properties": {},
            }
        )
    return {"type": "FeatureCollection", "features": features}


class DrawingSession:
    def __init__(
        self,
        *,
        on_finalize: Callable[[FinalizedGeometry], None] | None = None,
        on_preview: Callable[[FeatureCollection], None] | None = None,
        release_tool_on_finish: bool = True,
    ) -> None:
        self._on_finalize = on_finalize
        self._on_preview = on_preview
        self._release_tool_on_finish = release_tool_on_finish
        self._tool: Tool = "pointer"
        self._points: list[GeoPoint] = []

    @property
    def tool(self) -> Tool:
        return self._tool

    @property
    def kind(self) -> GeometryKind | None:
        if self._tool == "pointer":
            return None
        return GEOMETRY_KIND[self._tool]

    @property
    def state(self) -> DrawingState:
        return "collecting" if self._points else "idle"

    @property
    def points(self) -> tuple[GeoPoint, ...]:
        return tuple(self._points)

    @property
    def instruction(self) -> str:
        return DRAWING_INSTRUCTIONS[self._tool]

    @property
    def preview(self) -> FeatureCollection:
        return preview_features(self.points, self.kind)

    def select_tool(self, tool: Tool) -> None:
        if tool == self._tool:
            return
        self._reset()
        self._tool = tool

    def cancel(self) -> None:
        self._reset()

    def click(self, point: GeoPoint) -> FinalizedGeometry | None:
        kind = self.kind
        if kind is None:
            return None
        if kind == "point":
            return self._finalize(point)

        self._points.append(point)
        self._emit_preview()
        return None

    def double_click(self) -> FinalizedGeometry | None:
        kind = self.kind
        if kind is None or kind == "point" or not self._points:
            return None
        points = tuple(self._points)
        # A polygon closed on its first vertex counts that vertex once.
        counted = open_ring(points) if kind == "polygon" else points
        if len(counted) < MIN_POINTS[kind]:
            return None
        self._reset()
        return self._finalize(points)

    def _finalize(self, geometry: GeoPoint | tuple[GeoPoint, ...]) -> FinalizedGeometry:
        tool = self._tool
        if tool == "pointer":
            raise RuntimeError("no drawing tool selected")
        finalized = FinalizedGeometry(type=tool, geometry=geometry)
        logger.debug("Finalized %s geometry", finalized.type)
        if self._release_tool_on_finish:
            self.select_tool("pointer")
        if self._on_finalize is not None:
            self._on_finalize(finalized)
        return finalized

    def _reset(self) -> None:
        had_points = bool(self._points)
        self._points.clear()
        if had_points:
            self._emit_preview()

    def _emit_preview(self) -> None:
        if self._on_preview is not None:
            self._on_preview(self.preview)
