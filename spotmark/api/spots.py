from __future__ import annotations

import logging
import uuid

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spotmark.api.deps import get_current_user
from spotmark.core.errors import APIError, error_details
from spotmark.db.base import utcnow
from spotmark.db.session import get_db
from spotmark.models.annotation import AnnotationRow
from spotmark.models.spot import SpotRow
from spotmark.models.user import User
from spotmark.schemas.geo import GeoPoint
from spotmark.schemas.spot import Spot
from spotmark.services.annotations import apply_spot_update, spot_from_row, write_spot_row


router = APIRouter(prefix="/v1/spots", tags=["spots"])


logger = logging.getLogger(__name__)


class SpotCreateRequest(BaseModel):
    # Clients may send their own id so an optimistic insert keeps it.
    id: uuid.UUID | None = None
    name: str = Field(min_length=1)
    description: str = ""
    center: GeoPoint
    zoom_level: float = Field(default=14.0, ge=0.0, le=24.0)


class SpotUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    center: GeoPoint | None = None
    zoom_level: float | None = None


async def load_spot_row(
    db: AsyncSession, *, user: User, spot_id: uuid.UUID
) -> SpotRow | None:
    return (
        await db.execute(
            sa.select(SpotRow).where(SpotRow.id == spot_id, SpotRow.user_id == user.id)
        )
    ).scalar_one_or_none()


@router.get("", response_model=list[Spot])
async def list_spots(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[Spot]:
    rows = (
        await db.execute(
            sa.select(SpotRow)
            .where(SpotRow.user_id == user.id)
            .order_by(SpotRow.created_at.asc())
        )
    ).scalars().all()
    return [spot_from_row(r) for r in rows]


@router.post("", status_code=201, response_model=Spot)
async def create_spot(
    payload: SpotCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Spot:
    now = utcnow()
    row = SpotRow(
        id=payload.id or uuid.uuid4(),
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        center_lat=payload.center.lat,
        center_lng=payload.center.lng,
        zoom_level=payload.zoom_level,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise APIError(
            code="SPOT_CONFLICT",
            message="Spot id already exists",
            status_code=409,
        )
    return spot_from_row(row)


@router.put("/{id}", response_model=Spot)
async def update_spot(
    id: uuid.UUID,
    payload: SpotUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Spot:
    row = await load_spot_row(db, user=user, spot_id=id)
    if row is None:
        raise APIError(code="SPOT_NOT_FOUND", message="Spot not found", status_code=404)

    try:
        updated = apply_spot_update(
            spot_from_row(row), payload.model_dump(exclude_unset=True)
        )
    except ValidationError as exc:
        raise APIError(
            code="SPOT_INVALID",
            message="Invalid spot update",
            status_code=400,
            details=error_details(exc.errors()),
        )

    write_spot_row(row, updated)
    await db.commit()
    return updated


@router.delete("/{id}", status_code=204)
async def delete_spot(
    id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    row = await load_spot_row(db, user=user, spot_id=id)
    if row is None:
        raise APIError(code="SPOT_NOT_FOUND", message="Spot not found", status_code=404)

    # Unassign referencing annotations in the same transaction as the delete.
    # The FK would null spot_id on its own but leave updated_at stale.
    result = await db.execute(
        sa.update(AnnotationRow)
        .where(AnnotationRow.user_id == user.id, AnnotationRow.spot_id == row.id)
        .values(spot_id=None, updated_at=utcnow())
    )
    await db.delete(row)
    await db.commit()
    logger.info("Deleted spot %s, unassigned %s annotations", id, result.rowcount)
    return Response(status_code=204)
