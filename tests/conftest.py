from __future__ import annotations

import asyncio
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient


# Ensure `import spotmark.*` works when pytest chooses an import mode that
# doesn't automatically add the project root to sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Settings pointing every file the app touches into tmp_path."""

    db_path = tmp_path / "test.db"
    monkeypatch.setenv("SPOTMARK_DB_URL", f"sqlite+aiosqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("SPOTMARK_JWT_SIGNING_KEYS_JSON", '{"test-kid":"test-secret"}')
    monkeypatch.setenv("SPOTMARK_JWT_KID_CURRENT", "test-kid")

    # Client side: ASGI transport base URL and a throwaway visibility cache.
    monkeypatch.setenv("SPOTMARK_API_BASE_URL", "http://spotmark.test")
    monkeypatch.setenv("SPOTMARK_VISIBILITY_CACHE_PATH", str(tmp_path / "vis.json"))

    from spotmark.core.settings import get_settings

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture()
def client(settings) -> TestClient:
    # Fresh engine bound to this test's database.
    from spotmark.db import session as db_session

    db_session._engine = None  # noqa: SLF001
    db_session._sessionmaker = None  # noqa: SLF001

    # Registers users, spots and annotations on Base.metadata.
    import spotmark.models  # noqa: F401

    from spotmark.db.base import Base

    async def _init_schema() -> None:
        engine = db_session.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_init_schema())

    from spotmark.main import create_app

    return TestClient(create_app())
