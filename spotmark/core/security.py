from __future__ import annotations

import datetime as dt
import json
import uuid
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

from spotmark.core.settings import Settings


ACCESS_TTL_SECONDS = 24 * 60 * 60
MIN_PASSWORD_LENGTH = 8


_pwd_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    # Policy is checked here as well as in the request handler.
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError("password_too_short")
    return _pwd_hasher.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return _pwd_hasher.verify(hashed_password, password)
    except VerifyMismatchError:
        return False


def _load_signing_keys(settings: Settings) -> dict[str, str]:
    if not settings.jwt_signing_keys_json:
        raise RuntimeError("SPOTMARK_JWT_SIGNING_KEYS_JSON is required")
    raw = json.loads(settings.jwt_signing_keys_json)
    if not isinstance(raw, dict):
        raise ValueError("SPOTMARK_JWT_SIGNING_KEYS_JSON must be a JSON object")
    keys = {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}
    if not keys:
        raise ValueError("SPOTMARK_JWT_SIGNING_KEYS_JSON must contain at least one kid")
    return keys


def issue_access_token(*, user_id: uuid.UUID, settings: Settings) -> tuple[str, int]:
    keys = _load_signing_keys(settings)
    kid = settings.jwt_kid_current
    key = keys.get(kid)
    if not key:
        raise RuntimeError("SPOTMARK_JWT_KID_CURRENT not found in signing key map")

    now = dt.datetime.now(dt.timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + dt.timedelta(seconds=ACCESS_TTL_SECONDS)).timestamp()),
    }
    token = jwt.encode(payload, key, algorithm="HS256", headers={"kid": kid})
    return token, ACCESS_TTL_SECONDS


def decode_access_token(*, token: str, settings: Settings) -> dict[str, Any]:
    keys = _load_signing_keys(settings)

    # Pick the key by header.kid so keys can be rotated.
    kid = jwt.get_unverified_header(token).get("kid")
    if not isinstance(kid, str) or kid not in keys:
        raise jwt.InvalidTokenError("unknown kid")

    return jwt.decode(
        token,
        keys[kid],
        algorithms=["HS256"],
        options={"require": ["exp", "iat", "sub"]},
    )
