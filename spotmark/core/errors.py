from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any, Literal


ErrorCode = Literal[
    "AUTH_TOKEN_INVALID",
    "AUTH_TOKEN_EXPIRED",
    "AUTH_INVALID_CREDENTIALS",
    "AUTH_EMAIL_TAKEN",
    "ANNOTATION_INVALID",
    "ANNOTATION_NOT_FOUND",
    "ANNOTATION_CONFLICT",
    "ANNOTATION_SPOT_NOT_FOUND",
    "SPOT_INVALID",
    "SPOT_NOT_FOUND",
    "SPOT_CONFLICT",
    "VALIDATION_ERROR",
    "HTTP_ERROR",
    "INTERNAL_ERROR",
]


@dataclasses.dataclass(slots=True)
class APIError(Exception):
    """Business error rendered as the standard error envelope."""

    code: ErrorCode
    message: str
    status_code: int = 400
    details: Any | None = None


class GeometryMismatchError(TypeError):
    """Geometry handed to an annotation constructor does not fit its type.

    Raised for programming errors only; the drawing session never produces
    such geometry.
    """


def error_details(errors: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """JSON-safe ``details`` from pydantic/FastAPI error dicts.

    Their ``ctx`` may hold exception objects, so only location and message
    are kept.
    """

    return [{"loc": list(e["loc"]), "msg": e["msg"]} for e in errors]


def make_error_payload(
    *, code: str, message: str, trace_id: str | None, details: Any | None
) -> dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "details": details,
        "trace_id": trace_id,
    }
