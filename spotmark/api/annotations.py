from __future__ import annotations

import uuid
from typing import Any

import sqlalchemy as sa
from fastapi import APIRouter, Body, Depends, Response
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spotmark.api.deps import get_current_user
from spotmark.api.spots import load_spot_row
from spotmark.core.errors import APIError, error_details
from spotmark.db.base import utcnow
from spotmark.db.session import get_db
from spotmark.models.annotation import AnnotationRow
from spotmark.models.user import User
from spotmark.schemas.annotation import annotation_adapter
from spotmark.services.annotations import (
    annotation_from_row,
    apply_update,
    variant_data,
    write_annotation_row,
)


router = APIRouter(prefix="/v1/annotations", tags=["annotations"])


async def _require_spot(
    db: AsyncSession, *, user: User, spot_id: uuid.UUID | None
) -> None:
    if spot_id is None:
        return
    if await load_spot_row(db, user=user, spot_id=spot_id) is None:
        raise APIError(
            code="ANNOTATION_SPOT_NOT_FOUND",
            message="Referenced spot does not exist",
            status_code=400,
        )


async def _load_row(
    db: AsyncSession, *, user: User, annotation_id: uuid.UUID
) -> AnnotationRow:
    row = (
        await db.execute(
            sa.select(AnnotationRow).where(
                AnnotationRow.id == annotation_id, AnnotationRow.user_id == user.id
            )
        )
    ).scalar_one_or_none()
    if row is None:
        raise APIError(
            code="ANNOTATION_NOT_FOUND",
            message="Annotation not found",
            status_code=404,
        )
    return row


@router.get("")
async def list_annotations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    rows = (
        await db.execute(
            sa.select(AnnotationRow)
            .where(AnnotationRow.user_id == user.id)
            .order_by(AnnotationRow.created_at.asc())
        )
    ).scalars().all()
    return [
        annotation_adapter.dump_python(annotation_from_row(r), mode="json")
        for r in rows
    ]


@router.post("", status_code=201)
async def create_annotation(
    # Validated by hand so a bad variant maps to ANNOTATION_INVALID, not 422.
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    try:
        annotation = annotation_adapter.validate_python(payload)
    except ValidationError as exc:
        raise APIError(
            code="ANNOTATION_INVALID",
            message="Invalid annotation",
            status_code=400,
            details=error_details(exc.errors()),
        )

    await _require_spot(db, user=user, spot_id=annotation.spot_id)

    # Ownership and timestamps are the server's call.
    now = utcnow()
    annotation = annotation.model_copy(
        update={"owner_id": str(user.id), "created_at": now, "updated_at": now}
    )
    db.add(
        AnnotationRow(
            id=annotation.id,
            user_id=user.id,
            spot_id=annotation.spot_id,
            type=annotation.type,
            label=annotation.label,
            notes=annotation.notes,
            data=variant_data(annotation),
            created_at=now,
            updated_at=now,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise APIError(
            code="ANNOTATION_CONFLICT",
            message="Annotation id or label already in use",
            status_code=409,
        )
    return annotation_adapter.dump_python(annotation, mode="json")


@router.put("/{id}")
async def update_annotation(
    id: uuid.UUID,
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    row = await _load_row(db, user=user, annotation_id=id)
    try:
        updated = apply_update(annotation_from_row(row), payload)
    except ValidationError as exc:
        raise APIError(
            code="ANNOTATION_INVALID",
            message="Invalid annotation update",
            status_code=400,
            details=error_details(exc.errors()),
        )

    if updated.spot_id != row.spot_id:
        await _require_spot(db, user=user, spot_id=updated.spot_id)

    write_annotation_row(row, updated)
    await db.commit()
    return annotation_adapter.dump_python(updated, mode="json")


@router.delete("/{id}", status_code=204)
async def delete_annotation(
    id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    row = await _load_row(db, user=user, annotation_id=id)
    await db.delete(row)
    await db.commit()
    return Response(status_code=204)
