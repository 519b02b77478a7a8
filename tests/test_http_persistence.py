from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from spotmark.client.remote import HttpPersistence, UnauthenticatedError
from spotmark.client.sync import SyncEngine
from spotmark.schemas.geo import GeoPoint
from spotmark.schemas.spot import Spot
from spotmark.services.drawing import DrawingSession


BASE_URL = "http://spotmark.test"


def _register(client: TestClient, *, email: str) -> None:
    r = client.post("/v1/auth/register", json={"email": email, "password": "password123!"})
    assert r.status_code == 201, r.text


def test_engine_round_trip_through_api(client: TestClient) -> None:
    _register(client, email="sync@test.com")

    async def _run() -> None:
        transport = httpx.ASGITransport(app=client.app)
        async with httpx.AsyncClient(transport=transport) as http:
            remote = HttpPersistence(base_url=BASE_URL, http_client=http)
            await remote.login(email="sync@test.com", password="password123!")
            engine = SyncEngine(remote)
            assert await engine.load() is True
            assert engine.annotations == ()

            spot = Spot(name="Bay", center=GeoPoint(lng=5.0, lat=52.0))
            created_spot = await engine.create_spot(spot)
            assert created_spot is not None
            assert created_spot.id == spot.id

            session = DrawingSession(
                on_finalize=lambda f: engine.create_annotation(
                    engine.new_draft(f, spot_id=spot.id)
                ),
                release_tool_on_finish=False,
            )
            session.select_tool("target_zone")
            session.click(GeoPoint(lng=5.0, lat=52.0))
            session.click(GeoPoint(lng=5.01, lat=52.01))
            session.select_tool("spawn_zone")
            for lng, lat in ((5.0, 52.0), (5.1, 52.0), (5.1, 52.1)):
                session.click(GeoPoint(lng=lng, lat=lat))
            session.double_click()
            await engine.drain()
            assert engine.error is None

            labels = sorted((a.type, a.label) for a in engine.annotations)
            assert labels == [
                ("spawn_zone", "A"),
                ("target_zone", "A"),
                ("target_zone", "B"),
            ]

            target = next(a for a in engine.annotations if a.type == "target_zone")
            await engine.update_annotation(target.id, {"title": "Deep hole", "depth": 11})
            assert engine.error is None

            await engine.delete_spot(spot.id)
            assert engine.error is None

            # A fresh engine sees exactly what the server stored.
            fresh = SyncEngine(remote)
            await fresh.load()
            assert fresh.spots == ()
            assert {a.spot_id for a in fresh.annotations} == {None}
            stored = next(a for a in fresh.annotations if a.id == target.id)
            assert stored.title == "Deep hole"
            assert stored.depth == 11.0

    asyncio.run(_run())


def test_rejected_create_rolls_back(client: TestClient) -> None:
    _register(client, email="conflict@test.com")

    async def _run() -> None:
        transport = httpx.ASGITransport(app=client.app)
        async with httpx.AsyncClient(transport=transport) as http:
            remote = HttpPersistence(base_url=BASE_URL, http_client=http)
            await remote.login(email="conflict@test.com", password="password123!")

            first = SyncEngine(remote)
            second = SyncEngine(remote)
            await first.load()
            await second.load()

            # Both engines think "A" is free; the server allows only one.
            session = DrawingSession(release_tool_on_finish=False)
            session.select_tool("note")
            finalized = session.click(GeoPoint(lng=1.0, lat=1.0))
            assert finalized is not None
            assert await first.create_annotation(first.new_draft(finalized)) is not None

            assert await second.create_annotation(second.new_draft(finalized)) is None
            assert second.annotations == ()
            assert second.error is not None
            assert "already in use" in second.error

    asyncio.run(_run())


def test_requests_without_token_sign_out(client: TestClient) -> None:
    async def _run() -> None:
        transport = httpx.ASGITransport(app=client.app)
        async with httpx.AsyncClient(transport=transport) as http:
            remote = HttpPersistence(base_url=BASE_URL, http_client=http)
            with pytest.raises(UnauthenticatedError) as excinfo:
                await remote.list_spots()
            assert excinfo.value.status_code == 401

            bad = HttpPersistence(
                base_url=BASE_URL, access_token="not-a-jwt", http_client=http
            )
            engine = SyncEngine(bad)
            assert await engine.load() is False
            assert engine.authenticated is False

    asyncio.run(_run())


@pytest.mark.parametrize(
    "body",
    [
        {"text": "<html>oops</html>"},
        {"json": {"unexpected": True}},
    ],
)
def test_malformed_success_body_rolls_back(body: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, **body)

    async def _run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            remote = HttpPersistence(base_url=BASE_URL, access_token="t", http_client=http)
            engine = SyncEngine(remote)

            session = DrawingSession()
            session.select_tool("note")
            finalized = session.click(GeoPoint(lng=1.0, lat=1.0))
            assert finalized is not None

            task = engine.create_annotation(engine.new_draft(finalized))
            assert len(engine.annotations) == 1
            assert await task is None
            await engine.drain()

            assert engine.annotations == ()
            assert engine.error is not None
            assert "malformed body" in engine.error
            assert engine.authenticated is True

    asyncio.run(_run())
