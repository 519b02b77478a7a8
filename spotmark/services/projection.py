"""Grouped, filterable view over the flat annotation collection.

``project`` is a pure function of its inputs. Visibility never removes an
annotation from the view; it only marks whole type groups as hidden so the
map skips them while lists still show them.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Iterable, Mapping
from typing import Literal

from spotmark.schemas.annotation import ANNOTATION_TYPES, Annotation, AnnotationType
from spotmark.schemas.spot import Spot


GroupBy = Literal["spot", "type"]

DEFAULT_VISIBILITY: dict[AnnotationType, bool] = {t: True for t in ANNOTATION_TYPES}


@dataclasses.dataclass(frozen=True, slots=True)
class TypeGroup:
    type: AnnotationType
    visible: bool
    annotations: tuple[Annotation, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class Bucket:
    # None for the unassigned bucket (and the single bucket of group_by="type").
    spot_id: uuid.UUID | None
    name: str
    groups: tuple[TypeGroup, ...]

    @property
    def count(self) -> int:
        return sum(len(g.annotations) for g in self.groups)


@dataclasses.dataclass(frozen=True, slots=True)
class GroupedView:
    group_by: GroupBy
    buckets: tuple[Bucket, ...]

    def visible_annotations(self) -> list[Annotation]:
        return [
            a
            for bucket in self.buckets
            for group in bucket.groups
            if group.visible
            for a in group.annotations
        ]


def _bucket(
    spot_id: uuid.UUID | None,
    name: str,
    members: list[Annotation],
    visibility: Mapping[AnnotationType, bool],
) -> Bucket:
    groups = tuple(
        TypeGroup(
            type=t,
            visible=bool(visibility.get(t, DEFAULT_VISIBILITY[t])),
            annotations=tuple(a for a in members if a.type == t),
        )
        for t in ANNOTATION_TYPES
    )
    return Bucket(spot_id=spot_id, name=name, groups=groups)


def project(
    annotations: Iterable[Annotation],
    spots: Iterable[Spot],
    visibility: Mapping[AnnotationType, bool],
    group_by: GroupBy = "spot",
) -> GroupedView:
    annotations = list(annotations)
    if group_by == "type":
        return GroupedView(
            group_by="type",
            buckets=(_bucket(None, "All annotations", annotations, visibility),),
        )
    if group_by != "spot":
        raise ValueError(f"unsupported group_by: {group_by!r}")

    spots = list(spots)
    known = {s.id for s in spots}
    by_spot: dict[uuid.UUID | None, list[Annotation]] = {s.id: [] for s in spots}
    by_spot[None] = []
    for a in annotations:
        # A reference to a spot we do not hold counts as unassigned.
        key = a.spot_id if a.spot_id in known else None
        by_spot[key].append(a)

    buckets = [_bucket(s.id, s.name, by_spot[s.id], visibility) for s in spots]
    buckets.append(_bucket(None, "Unassigned", by_spot[None], visibility))
    return GroupedView(group_by="spot", buckets=tuple(buckets))
