from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spotmark.core.errors import APIError
from spotmark.core.security import decode_access_token
from spotmark.core.settings import get_settings
from spotmark.db.session import get_db
from spotmark.models.user import User


async def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise APIError(
            code="AUTH_TOKEN_INVALID",
            message="Missing bearer token",
            status_code=401,
        )

    token = authorization.removeprefix("Bearer ").strip()
    try:
        payload = decode_access_token(token=token, settings=get_settings())
    except jwt.ExpiredSignatureError:
        raise APIError(
            code="AUTH_TOKEN_EXPIRED",
            message="Access token expired",
            status_code=401,
        )
    except jwt.InvalidTokenError:
        raise APIError(
            code="AUTH_TOKEN_INVALID",
            message="Invalid access token",
            status_code=401,
        )

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise APIError(
            code="AUTH_TOKEN_INVALID",
            message="Invalid access token subject",
            status_code=401,
        )

    user = (
        await db.execute(select(User).where(User.id == user_id))
    ).scalar_one_or_none()
    if user is None:
        raise APIError(
            code="AUTH_TOKEN_INVALID",
            message="User not found",
            status_code=401,
        )
    return user
