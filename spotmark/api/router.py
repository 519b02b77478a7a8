from __future__ import annotations

from fastapi import APIRouter

from spotmark.api.annotations import router as annotations_router
from spotmark.api.auth import router as auth_router
from spotmark.api.health import router as health_router
from spotmark.api.spots import router as spots_router
from spotmark.api.users import router as users_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(spots_router)
api_router.include_router(annotations_router)
