"""One user's map screen: drawing, sync and visibility wired together."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

import httpx

from spotmark.client.remote import HttpPersistence
from spotmark.client.sync import SyncEngine
from spotmark.core.settings import Settings
from spotmark.schemas.annotation import Annotation, AnnotationType
from spotmark.services.drawing import DrawingSession, FinalizedGeometry
from spotmark.services.projection import GroupBy, GroupedView
from spotmark.services.render import to_feature_collection
from spotmark.services.visibility import VisibilityStore


logger = logging.getLogger(__name__)


class MapWorkspace:
    """Finalized drawings become annotations filed under ``active_spot_id``."""

    def __init__(
        self,
        engine: SyncEngine,
        visibility_store: VisibilityStore,
        *,
        release_tool_on_finish: bool = True,
    ) -> None:
        self.engine = engine
        self.visibility_store = visibility_store
        self.visibility = visibility_store.load()
        self.group_by: GroupBy = "spot"
        self.active_spot_id: uuid.UUID | None = None
        self.drawing = DrawingSession(
            on_finalize=self._on_finalize,
            release_tool_on_finish=release_tool_on_finish,
        )
        self.last_task: asyncio.Task[Annotation | None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> MapWorkspace:
        remote = HttpPersistence(
            base_url=settings.api_base_url,
            access_token=access_token,
            timeout_s=settings.http_timeout_s,
            http_client=http_client,
        )
        engine = SyncEngine(remote, guard_stale_responses=settings.guard_stale_responses)
        return cls(engine, VisibilityStore(settings.visibility_cache_path))

    def _holds_spot(self, spot_id: uuid.UUID) -> bool:
        return any(s.id == spot_id for s in self.engine.spots)

    def _on_finalize(self, finalized: FinalizedGeometry) -> None:
        if self.active_spot_id is not None and not self._holds_spot(self.active_spot_id):
            # Spot was deleted after it was selected.
            self.active_spot_id = None
        draft = self.engine.new_draft(finalized, spot_id=self.active_spot_id)
        logger.debug("Creating %s %s", draft.type, draft.label)
        self.last_task = self.engine.create_annotation(draft)

    def view(self) -> GroupedView:
        return self.engine.view(self.visibility, self.group_by)

    def features(self) -> dict[str, Any]:
        return to_feature_collection(self.view())

    def toggle_visibility(self, type_: AnnotationType) -> None:
        self.visibility = self.visibility_store.toggle(self.visibility, type_)

    def select_spot(self, spot_id: uuid.UUID | None) -> None:
        if spot_id is not None and not self._holds_spot(spot_id):
            raise KeyError(spot_id)
        self.active_spot_id = spot_id
