"""Optimistic client-side state for one signed-in user.

Every mutation changes the local collection synchronously and only then
schedules the remote request as an ``asyncio.Task``. When the request fails
the local change is rolled back and ``error`` is set; the failure is never
raised to the caller. The returned task resolves to the server record (or
``True`` for deletes) on success and ``None`` on failure.

Requests for the same id are not serialized: if two are in flight, whichever
response arrives last wins. With ``guard_stale_responses`` the engine instead
drops responses to requests that a newer request for the same id has
superseded.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from spotmark.client.remote import Persistence, PersistenceError, UnauthenticatedError
from spotmark.schemas.annotation import Annotation, AnnotationType
from spotmark.schemas.spot import Spot
from spotmark.services.annotations import apply_spot_update, apply_update, create_draft
from spotmark.services.drawing import FinalizedGeometry
from spotmark.services.labels import next_label
from spotmark.services.projection import GroupBy, GroupedView, project


logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")

Listener = Callable[[], None]


def _replace(items: list[E], record: E) -> list[E]:
    # Matched by id; a record no longer held locally is not re-added.
    return [record if item.id == record.id else item for item in items]  # type: ignore[attr-defined]


class SyncEngine:
    def __init__(
        self,
        remote: Persistence,
        *,
        owner_id: str = "",
        guard_stale_responses: bool = False,
    ) -> None:
        self._remote = remote
        self.owner_id = owner_id
        self._guard = guard_stale_responses

        self._annotations: list[Annotation] = []
        self._spots: list[Spot] = []
        self.error: str | None = None
        self.loading = False
        self.authenticated = True

        self._listeners: list[Listener] = []
        # Latest request per id; entries go once that request resolves.
        self._issued: dict[uuid.UUID, int] = {}
        self._seq = itertools.count(1)
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return tuple(self._annotations)

    @property
    def spots(self) -> tuple[Spot, ...]:
        return tuple(self._spots)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every local change; returns an unsubscribe."""

        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def clear_error(self) -> None:
        self.error = None
        self._changed()

    def view(
        self, visibility: Mapping[AnnotationType, bool], group_by: GroupBy = "spot"
    ) -> GroupedView:
        return project(self._annotations, self._spots, visibility, group_by)

    def next_label(self, type_: AnnotationType) -> str:
        return next_label(a.label for a in self._annotations if a.type == type_)

    def new_draft(
        self, finalized: FinalizedGeometry, *, spot_id: uuid.UUID | None = None
    ) -> Annotation:
        return create_draft(
            finalized.type,
            finalized.geometry,
            self.next_label(finalized.type),
            self.owner_id,
            spot_id=spot_id,
        )

    async def load(self) -> bool:
        self.loading = True
        self._changed()
        try:
            owner_id = await self._remote.current_user_id()
            annotations = await self._remote.list_annotations()
            spots = await self._remote.list_spots()
        except UnauthenticatedError:
            self._sign_out()
            return False
        except PersistenceError as exc:
            self.error = f"Failed to load: {exc.message}"
            logger.warning("Initial load failed: %s", exc.message)
            return False
        finally:
            self.loading = False
            self._changed()

        self.owner_id = owner_id
        self._annotations = list(annotations)
        self._spots = list(spots)
        self.authenticated = True
        self._changed()
        return True

    async def drain(self) -> None:
        """Wait for every request issued so far."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    # Annotations

    def create_annotation(self, annotation: Annotation) -> asyncio.Task[Annotation | None]:
        def apply() -> None:
            self._annotations.append(annotation)

        def rollback() -> None:
            self._annotations = [a for a in self._annotations if a.id != annotation.id]

        def confirm(created: Annotation) -> None:
            self._annotations = _replace(self._annotations, created)

        return self._persist(
            lambda: self._remote.create_annotation(annotation),
            entity_id=annotation.id,
            apply=apply,
            confirm=confirm,
            rollback=rollback,
            failure="Failed to create annotation",
        )

    def update_annotation(
        self, annotation_id: uuid.UUID, changes: Mapping[str, Any]
    ) -> asyncio.Task[Annotation | None]:
        snapshot = list(self._annotations)

        def apply() -> None:
            self._annotations = [
                apply_update(a, changes) if a.id == annotation_id else a
                for a in snapshot
            ]

        def rollback() -> None:
            self._annotations = snapshot

        def confirm(updated: Annotation) -> None:
            self._annotations = _replace(self._annotations, updated)

        return self._persist(
            lambda: self._remote.update_annotation(annotation_id, dict(changes)),
            entity_id=annotation_id,
            apply=apply,
            confirm=confirm,
            rollback=rollback,
            failure="Failed to update annotation",
        )

    def delete_annotation(self, annotation_id: uuid.UUID) -> asyncio.Task[bool | None]:
        snapshot = list(self._annotations)

        def apply() -> None:
            self._annotations = [a for a in snapshot if a.id != annotation_id]

        def rollback() -> None:
            self._annotations = snapshot

        return self._persist(
            lambda: self._remote.delete_annotation(annotation_id),
            entity_id=annotation_id,
            apply=apply,
            confirm=lambda _: None,
            rollback=rollback,
            failure="Failed to delete annotation",
        )

    # Spots

    def create_spot(self, spot: Spot) -> asyncio.Task[Spot | None]:
        def apply() -> None:
            self._spots.append(spot)

        def rollback() -> None:
            self._spots = [s for s in self._spots if s.id != spot.id]

        def confirm(created: Spot) -> None:
            self._spots = _replace(self._spots, created)

        return self._persist(
            lambda: self._remote.create_spot(spot),
            entity_id=spot.id,
            apply=apply,
            confirm=confirm,
            rollback=rollback,
            failure="Failed to create spot",
        )

    def update_spot(
        self, spot_id: uuid.UUID, changes: Mapping[str, Any]
    ) -> asyncio.Task[Spot | None]:
        snapshot = list(self._spots)

        def apply() -> None:
            self._spots = [
                apply_spot_update(s, changes) if s.id == spot_id else s for s in snapshot
            ]

        def rollback() -> None:
            self._spots = snapshot

        def confirm(updated: Spot) -> None:
            self._spots = _replace(self._spots, updated)

        return self._persist(
            lambda: self._remote.update_spot(spot_id, dict(changes)),
            entity_id=spot_id,
            apply=apply,
            confirm=confirm,
            rollback=rollback,
            failure="Failed to update spot",
        )

    def delete_spot(self, spot_id: uuid.UUID) -> asyncio.Task[bool | None]:
        spot_snapshot = list(self._spots)
        annotation_snapshot = list(self._annotations)

        def apply() -> None:
            # Mirror the server: referencing annotations become unassigned in
            # the same step as the spot disappears.
            self._spots = [s for s in spot_snapshot if s.id != spot_id]
            self._annotations = [
                apply_update(a, {"spot_id": None}) if a.spot_id == spot_id else a
                for a in annotation_snapshot
            ]

        def rollback() -> None:
            self._spots = spot_snapshot
            self._annotations = annotation_snapshot

        return self._persist(
            lambda: self._remote.delete_spot(spot_id),
            entity_id=spot_id,
            apply=apply,
            confirm=lambda _: None,
            rollback=rollback,
            failure="Failed to delete spot",
        )

    # Internals

    def _persist(
        self,
        request: Callable[[], Awaitable[T]],
        *,
        entity_id: uuid.UUID,
        apply: Callable[[], None],
        confirm: Callable[[T], None],
        rollback: Callable[[], None],
        failure: str,
    ) -> asyncio.Task[T | None]:
        # Raises RuntimeError outside a running loop, before anything changes.
        loop = asyncio.get_running_loop()
        apply()
        self._changed()

        seq = next(self._seq)
        self._issued[entity_id] = seq

        async def run() -> T | None:
            try:
                result = await request()
            except UnauthenticatedError as exc:
                logger.warning("%s: %s", failure, exc.message)
                self._sign_out()
                return None
            except PersistenceError as exc:
                if self._superseded(entity_id, seq):
                    logger.info("%s (superseded request, not rolled back)", failure)
                else:
                    rollback()
                    logger.warning("%s, rolled back: %s", failure, exc.message)
                self.error = f"{failure}: {exc.message}"
                self._changed()
                return None
            finally:
                latest = self._issued.get(entity_id) == seq
                if latest:
                    del self._issued[entity_id]

            if self._guard and not latest:
                logger.debug("Dropping stale response for %s", entity_id)
                return result
            confirm(result)
            self._changed()
            return result

        task = loop.create_task(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _superseded(self, entity_id: uuid.UUID, seq: int) -> bool:
        return self._guard and self._issued.get(entity_id) != seq

    def _sign_out(self) -> None:
        self.owner_id = ""
        self._annotations = []
        self._spots = []
        self.authenticated = False
        self.error = "Not signed in"
        self._changed()

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()
