from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTMARK_",
        case_sensitive=False,
    )

    # Server: local async sqlite database by default.
    db_url: str = "sqlite+aiosqlite:///./data/dev.db"

    # Auth (JWT)
    jwt_signing_keys_json: str | None = None
    jwt_kid_current: str = "dev-1"

    # CORS (map web client on localhost during development)
    cors_allow_origin: str = "http://localhost:3000"
    cors_allow_credentials: bool = True

    # Client side
    api_base_url: str = "http://localhost:8000"
    http_timeout_s: float = 10.0
    visibility_cache_path: str = "./data/visibility.json"
    # Off by default: same-id responses resolve last-write-wins.
    guard_stale_responses: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
