from __future__ import annotations

import asyncio
import uuid
from typing import Any

import pytest

from spotmark.client.remote import PersistenceError, UnauthenticatedError
from spotmark.client.sync import SyncEngine
from spotmark.schemas.annotation import Annotation
from spotmark.schemas.geo import GeoPoint
from spotmark.schemas.spot import Spot
from spotmark.services.annotations import apply_spot_update, apply_update, create_draft
from spotmark.services.drawing import DrawingSession


P = GeoPoint(lng=5.0, lat=52.0)
LINE = [GeoPoint(lng=5.0, lat=52.0), GeoPoint(lng=5.1, lat=52.1)]


class FakeRemote:
    """In-memory persistence with switchable failure and per-call gates."""

    def __init__(
        self,
        annotations: list[Annotation] | None = None,
        spots: list[Spot] | None = None,
    ) -> None:
        self.annotations = {a.id: a for a in annotations or []}
        self.spots = {s.id: s for s in spots or []}
        self.fail = False
        self.unauthenticated = False
        self.gates: list[asyncio.Event] = []
        self.calls: list[str] = []

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.gates:
            await self.gates.pop(0).wait()
        if self.unauthenticated:
            raise UnauthenticatedError("Not signed in", status_code=401)
        if self.fail:
            raise PersistenceError("backend unavailable", status_code=500)

    async def current_user_id(self) -> str:
        await self._call("current_user_id")
        return "server-owner"

    async def list_annotations(self) -> list[Annotation]:
        await self._call("list_annotations")
        return list(self.annotations.values())

    async def create_annotation(self, annotation: Annotation) -> Annotation:
        await self._call("create_annotation")
        stored = annotation.model_copy(update={"owner_id": "server-owner"})
        self.annotations[stored.id] = stored
        return stored

    async def update_annotation(
        self, annotation_id: uuid.UUID, changes: dict[str, Any]
    ) -> Annotation:
        await self._call("update_annotation")
        stored = apply_update(self.annotations[annotation_id], changes)
        self.annotations[annotation_id] = stored
        return stored

    async def delete_annotation(self, annotation_id: uuid.UUID) -> bool:
        await self._call("delete_annotation")
        self.annotations.pop(annotation_id)
        return True

    async def list_spots(self) -> list[Spot]:
        await self._call("list_spots")
        return list(self.spots.values())

    async def create_spot(self, spot: Spot) -> Spot:
        await self._call("create_spot")
        self.spots[spot.id] = spot
        return spot

    async def update_spot(self, spot_id: uuid.UUID, changes: dict[str, Any]) -> Spot:
        await self._call("update_spot")
        stored = apply_spot_update(self.spots[spot_id], changes)
        self.spots[spot_id] = stored
        return stored

    async def delete_spot(self, spot_id: uuid.UUID) -> bool:
        await self._call("delete_spot")
        self.spots.pop(spot_id)
        return True


def _note(label: str, **kwargs) -> Annotation:
    return create_draft("note", P, label, "u", **kwargs)


def test_load_populates_collections() -> None:
    async def _run() -> None:
        spot = Spot(name="Bay", center=P)
        remote = FakeRemote([_note("A", spot_id=spot.id)], [spot])
        engine = SyncEngine(remote)
        assert await engine.load() is True
        assert len(engine.annotations) == 1
        assert engine.spots == (spot,)
        assert engine.owner_id == "server-owner"
        assert engine.loading is False
        assert engine.error is None

    asyncio.run(_run())


def test_load_failure_sets_error() -> None:
    async def _run() -> None:
        remote = FakeRemote()
        remote.fail = True
        engine = SyncEngine(remote)
        assert await engine.load() is False
        assert engine.error is not None
        assert engine.loading is False

    asyncio.run(_run())


def test_create_is_visible_before_remote_confirms() -> None:
    async def _run() -> None:
        remote = FakeRemote()
        gate = asyncio.Event()
        remote.gates.append(gate)
        engine = SyncEngine(remote, owner_id="u")

        draft = _note("A")
        task = engine.create_annotation(draft)
        assert engine.annotations == (draft,)

        gate.set()
        created = await task
        assert created is not None
        assert created.owner_id == "server-owner"
        # Local copy replaced by the server record.
        assert engine.annotations == (created,)

    asyncio.run(_run())


def test_failed_create_rolls_back() -> None:
    async def _run() -> None:
        existing = _note("A")
        remote = FakeRemote([existing])
        engine = SyncEngine(remote)
        await engine.load()
        before = engine.annotations

        remote.fail = True
        task = engine.create_annotation(_note("B"))
        assert len(engine.annotations) == 2
        assert await task is None

        assert engine.annotations == before
        assert engine.error == "Failed to create annotation: backend unavailable"

    asyncio.run(_run())


def test_failed_update_restores_collection() -> None:
    async def _run() -> None:
        a, b = _note("A"), _note("B")
        remote = FakeRemote([a, b])
        engine = SyncEngine(remote)
        await engine.load()

        remote.fail = True
        task = engine.update_annotation(a.id, {"notes": "changed"})
        assert engine.annotations[0].notes == "changed"
        await task

        assert engine.annotations == (a, b)
        assert engine.error is not None

    asyncio.run(_run())


def test_successful_update_takes_server_record() -> None:
    async def _run() -> None:
        a = create_draft("isobath", LINE, "A", "u")
        remote = FakeRemote([a])
        engine = SyncEngine(remote)
        await engine.load()

        updated = await engine.update_annotation(a.id, {"depth": 4.0, "label": "Q"})
        assert updated is not None
        assert engine.annotations == (updated,)
        assert updated.depth == 4.0
        assert updated.label == "A"

    asyncio.run(_run())


def test_failed_delete_restores_annotation() -> None:
    async def _run() -> None:
        a, b = _note("A"), _note("B")
        remote = FakeRemote([a, b])
        engine = SyncEngine(remote)
        await engine.load()

        remote.fail = True
        task = engine.delete_annotation(b.id)
        assert engine.annotations == (a,)
        assert await task is None
        assert engine.annotations == (a, b)

    asyncio.run(_run())


def test_delete_spot_unassigns_referencing_annotations() -> None:
    async def _run() -> None:
        spot = Spot(name="Bay", center=P)
        other = Spot(name="Reef", center=P)
        referencing = [_note(label, spot_id=spot.id) for label in ("A", "B", "C")]
        loose = _note("D")
        elsewhere = _note("E", spot_id=other.id)
        remote = FakeRemote([*referencing, loose, elsewhere], [spot, other])
        engine = SyncEngine(remote)
        await engine.load()

        task = engine.delete_spot(spot.id)
        # Cascade is applied in the same step as the removal.
        assert engine.spots == (other,)
        by_id = {a.id: a for a in engine.annotations}
        assert len(by_id) == 5
        for a in referencing:
            assert by_id[a.id].spot_id is None
            assert by_id[a.id].updated_at > a.updated_at
        assert by_id[loose.id] == loose
        assert by_id[elsewhere.id] == elsewhere

        assert await task is True
        assert engine.error is None

    asyncio.run(_run())


def test_failed_spot_delete_restores_spot_and_references() -> None:
    async def _run() -> None:
        spot = Spot(name="Bay", center=P)
        referencing = [_note(label, spot_id=spot.id) for label in ("A", "B", "C")]
        remote = FakeRemote(referencing, [spot])
        engine = SyncEngine(remote)
        await engine.load()

        remote.fail = True
        await engine.delete_spot(spot.id)

        assert engine.spots == (spot,)
        assert engine.annotations == tuple(referencing)
        assert engine.error == "Failed to delete spot: backend unavailable"

    asyncio.run(_run())


def test_update_spot_and_rollback() -> None:
    async def _run() -> None:
        spot = Spot(name="Bay", center=P)
        remote = FakeRemote([], [spot])
        engine = SyncEngine(remote)
        await engine.load()

        renamed = await engine.update_spot(spot.id, {"name": "Big bay"})
        assert renamed is not None
        assert engine.spots[0].name == "Big bay"

        remote.fail = True
        await engine.update_spot(spot.id, {"name": "Tiny bay"})
        assert engine.spots == (renamed,)

    asyncio.run(_run())


def test_unauthenticated_signs_out() -> None:
    async def _run() -> None:
        remote = FakeRemote([_note("A")])
        engine = SyncEngine(remote)
        await engine.load()

        remote.unauthenticated = True
        assert await engine.create_annotation(_note("B")) is None
        assert engine.authenticated is False
        assert engine.annotations == ()
        assert engine.spots == ()
        assert engine.owner_id == ""

        assert await engine.load() is False
        assert engine.authenticated is False

    asyncio.run(_run())


def _racing_updates(guard: bool) -> str:
    async def _run() -> str:
        a = _note("A")
        remote = FakeRemote([a])
        engine = SyncEngine(remote, guard_stale_responses=guard)
        await engine.load()

        first_gate, second_gate = asyncio.Event(), asyncio.Event()
        remote.gates.extend([first_gate, second_gate])
        first = engine.update_annotation(a.id, {"notes": "first"})
        second = engine.update_annotation(a.id, {"notes": "second"})
        # Let both requests reach the gates before releasing them out of order.
        await asyncio.sleep(0)
        second_gate.set()
        await second
        first_gate.set()
        await first
        return engine.annotations[0].notes

    return asyncio.run(_run())


def test_last_response_wins_without_guard() -> None:
    assert _racing_updates(guard=False) == "first"


def test_stale_response_dropped_with_guard() -> None:
    assert _racing_updates(guard=True) == "second"


def test_sequential_drafts_get_unique_labels() -> None:
    async def _run() -> None:
        remote = FakeRemote()
        engine = SyncEngine(remote, owner_id="u")
        session = DrawingSession(
            on_finalize=lambda f: engine.create_annotation(engine.new_draft(f)),
            release_tool_on_finish=False,
        )
        session.select_tool("depth_point")
        for _ in range(5):
            session.click(P)
        session.select_tool("isobath")
        session.click(LINE[0])
        session.click(LINE[1])
        session.double_click()

        await engine.drain()
        depth_labels = [a.label for a in engine.annotations if a.type == "depth_point"]
        assert depth_labels == ["A", "B", "C", "D", "E"]
        assert [a.label for a in engine.annotations if a.type == "isobath"] == ["A"]
        assert len(remote.annotations) == 6

    asyncio.run(_run())


def test_listeners_are_notified() -> None:
    async def _run() -> None:
        engine = SyncEngine(FakeRemote())
        calls: list[int] = []
        unsubscribe = engine.subscribe(lambda: calls.append(1))
        task = engine.create_annotation(_note("A"))
        assert calls
        await task
        unsubscribe()
        seen = len(calls)
        engine.clear_error()
        assert len(calls) == seen

    asyncio.run(_run())


def test_polygon_closed_on_first_vertex_becomes_a_draft() -> None:
    a, b, c = P, GeoPoint(lng=5.1, lat=52.0), GeoPoint(lng=5.1, lat=52.1)

    async def _run() -> None:
        remote = FakeRemote()
        engine = SyncEngine(remote, owner_id="u")
        session = DrawingSession(
            on_finalize=lambda f: engine.create_annotation(engine.new_draft(f))
        )
        session.select_tool("spawn_zone")
        for p in (a, b, a):
            session.click(p)
        assert session.double_click() is None
        assert session.tool == "spawn_zone"

        session.cancel()
        for p in (a, b, c, a):
            session.click(p)
        assert session.double_click() is not None
        assert session.tool == "pointer"

        await engine.drain()
        assert engine.error is None
        (zone,) = engine.annotations
        assert zone.type == "spawn_zone"
        assert zone.points == (a, b, c)

    asyncio.run(_run())


def test_mutation_without_running_loop_changes_nothing() -> None:
    spot = Spot(name="Bay", center=P)
    engine = SyncEngine(FakeRemote())
    with pytest.raises(RuntimeError):
        engine.create_annotation(_note("A"))
    with pytest.raises(RuntimeError):
        engine.create_spot(spot)
    assert engine.annotations == ()
    assert engine.spots == ()


def test_resolved_requests_are_forgotten() -> None:
    async def _run() -> None:
        remote = FakeRemote()
        engine = SyncEngine(remote, guard_stale_responses=True)
        draft = _note("A")
        await engine.create_annotation(draft)
        await engine.update_annotation(draft.id, {"notes": "one"})
        remote.fail = True
        await engine.update_annotation(draft.id, {"notes": "two"})
        assert engine._issued == {}  # noqa: SLF001
        assert engine.annotations[0].notes == "one"

    asyncio.run(_run())
