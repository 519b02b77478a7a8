from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spotmark.core.errors import APIError
from spotmark.core.security import (
    MIN_PASSWORD_LENGTH,
    hash_password,
    issue_access_token,
    verify_password,
)
from spotmark.core.settings import get_settings
from spotmark.db.session import get_db
from spotmark.models.user import User


router = APIRouter(prefix="/v1/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class RegisterResponse(BaseModel):
    user_id: str
    email: str


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user_id: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(
    payload: RegisterRequest, db: AsyncSession = Depends(get_db)
) -> RegisterResponse:
    email = _normalize_email(payload.email)
    existing = (
        await db.execute(select(User.id).where(User.email == email))
    ).first()
    if existing is not None:
        raise APIError(
            code="AUTH_EMAIL_TAKEN",
            message="Email already registered",
            status_code=409,
        )

    try:
        hashed = hash_password(payload.password)
    except ValueError:
        raise APIError(
            code="AUTH_INVALID_CREDENTIALS",
            message="Password does not meet policy",
            status_code=400,
        )

    user = User(email=email, hashed_password=hashed)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration.
        await db.rollback()
        raise APIError(
            code="AUTH_EMAIL_TAKEN",
            message="Email already registered",
            status_code=409,
        )

    return RegisterResponse(user_id=str(user.id), email=user.email)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    user = (
        await db.execute(
            select(User).where(User.email == _normalize_email(payload.email))
        )
    ).scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise APIError(
            code="AUTH_INVALID_CREDENTIALS",
            message="Invalid email or password",
            status_code=401,
        )

    access_token, expires_in = issue_access_token(
        user_id=user.id, settings=get_settings()
    )
    return TokenResponse(
        access_token=access_token, expires_in=expires_in, user_id=str(user.id)
    )
