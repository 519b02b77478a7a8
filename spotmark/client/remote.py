"""Client side of the persistence collaborator.

``HttpPersistence`` talks to the ``/v1`` API with httpx. Every failure,
whether transport, HTTP status or a malformed body, surfaces as
``PersistenceError``; a 401 as its subclass ``UnauthenticatedError``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

import httpx
from pydantic_core import to_jsonable_python

from spotmark.schemas.annotation import (
    Annotation,
    annotation_adapter,
    annotation_list_adapter,
)
from spotmark.schemas.spot import Spot, spot_list_adapter


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceError(Exception):
    def __init__(
        self, message: str, *, status_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class UnauthenticatedError(PersistenceError):
    pass


class Persistence(Protocol):
    async def current_user_id(self) -> str: ...

    async def list_annotations(self) -> list[Annotation]: ...

    async def create_annotation(self, annotation: Annotation) -> Annotation: ...

    async def update_annotation(
        self, annotation_id: uuid.UUID, changes: dict[str, Any]
    ) -> Annotation: ...

    async def delete_annotation(self, annotation_id: uuid.UUID) -> bool: ...

    async def list_spots(self) -> list[Spot]: ...

    async def create_spot(self, spot: Spot) -> Spot: ...

    async def update_spot(self, spot_id: uuid.UUID, changes: dict[str, Any]) -> Spot: ...

    async def delete_spot(self, spot_id: uuid.UUID) -> bool: ...


class HttpPersistence:
    """httpx-backed ``Persistence`` scoped to one bearer token."""

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str | None = None,
        timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout_s
        self._client = http_client

    @property
    def access_token(self) -> str | None:
        return self._access_token

    async def _request(
        self, method: str, path: str, *, json: Any | None = None, auth: bool = True
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if auth:
            if not self._access_token:
                raise UnauthenticatedError("Not signed in", status_code=401)
            headers["Authorization"] = f"Bearer {self._access_token}"

        close_client = False
        client = self._client
        if client is None:
            close_client = True
            client = httpx.AsyncClient()

        try:
            resp = await client.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{method} {path} failed: {exc}") from exc
        finally:
            if close_client:
                await client.aclose()

        if resp.status_code >= 400:
            code = None
            message = f"{method} {path} returned {resp.status_code}"
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("message") or message
            error_cls = UnauthenticatedError if resp.status_code == 401 else PersistenceError
            raise error_cls(message, status_code=resp.status_code, code=code)
        return resp

    @staticmethod
    def _parse(resp: httpx.Response, parse: Callable[[Any], T]) -> T:
        # A 2xx body that is not JSON or does not match the schema still
        # fails as a persistence error.
        try:
            return parse(resp.json())
        except (ValueError, KeyError, TypeError) as exc:
            request = resp.request
            raise PersistenceError(
                f"{request.method} {request.url.path} returned a malformed body",
                status_code=resp.status_code,
            ) from exc

    async def login(self, *, email: str, password: str) -> str:
        resp = await self._request(
            "POST",
            "/v1/auth/login",
            json={"email": email, "password": password},
            auth=False,
        )
        self._access_token = self._parse(resp, lambda body: str(body["access_token"]))
        logger.info("Signed in as %s", email)
        return self._access_token

    async def current_user_id(self) -> str:
        resp = await self._request("GET", "/v1/users/me")
        return self._parse(resp, lambda body: str(body["user_id"]))

    async def list_annotations(self) -> list[Annotation]:
        resp = await self._request("GET", "/v1/annotations")
        return self._parse(resp, annotation_list_adapter.validate_python)

    async def create_annotation(self, annotation: Annotation) -> Annotation:
        resp = await self._request(
            "POST",
            "/v1/annotations",
            json=annotation_adapter.dump_python(annotation, mode="json"),
        )
        return self._parse(resp, annotation_adapter.validate_python)

    async def update_annotation(
        self, annotation_id: uuid.UUID, changes: dict[str, Any]
    ) -> Annotation:
        resp = await self._request(
            "PUT", f"/v1/annotations/{annotation_id}", json=to_jsonable_python(changes)
        )
        return self._parse(resp, annotation_adapter.validate_python)

    async def delete_annotation(self, annotation_id: uuid.UUID) -> bool:
        await self._request("DELETE", f"/v1/annotations/{annotation_id}")
        return True

    async def list_spots(self) -> list[Spot]:
        resp = await self._request("GET", "/v1/spots")
        return self._parse(resp, spot_list_adapter.validate_python)

    async def create_spot(self, spot: Spot) -> Spot:
        resp = await self._request(
            "POST",
            "/v1/spots",
            json=spot.model_dump(
                mode="json", include={"id", "name", "description", "center", "zoom_level"}
            ),
        )
        return self._parse(resp, Spot.model_validate)

    async def update_spot(self, spot_id: uuid.UUID, changes: dict[str, Any]) -> Spot:
        resp = await self._request(
            "PUT", f"/v1/spots/{spot_id}", json=to_jsonable_python(changes)
        )
        return self._parse(resp, Spot.model_validate)

    async def delete_spot(self, spot_id: uuid.UUID) -> bool:
        await self._request("DELETE", f"/v1/spots/{spot_id}")
        return True
