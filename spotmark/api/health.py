from __future__ import annotations

import json
import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spotmark.core.settings import Settings
from spotmark.core.settings import get_settings
from spotmark.db.session import get_db
from spotmark.models import AnnotationRow


router = APIRouter(tags=["health"])


logger = logging.getLogger(__name__)


def _jwt_config_usable(settings: Settings) -> bool:
    if not settings.jwt_signing_keys_json:
        return False
    try:
        key_map = json.loads(settings.jwt_signing_keys_json)
    except ValueError:
        return False
    if not isinstance(key_map, dict):
        return False
    secret = key_map.get(settings.jwt_kid_current)
    return isinstance(secret, str) and bool(secret)


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    if not _jwt_config_usable(settings):
        return JSONResponse(status_code=503, content={"status": "not_ready"})

    # Fails when migrations have not been applied.
    try:
        await db.execute(select(AnnotationRow.data).limit(1))
    except SQLAlchemyError:
        logger.warning("Readiness check: schema not available", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "not_ready"})

    return JSONResponse(status_code=200, content={"status": "ready"})
