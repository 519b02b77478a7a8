from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from spotmark.schemas.annotation import AnnotationType
from spotmark.services.projection import DEFAULT_VISIBILITY


logger = logging.getLogger(__name__)

VISIBILITY_KEY = "annotation-visibility"


def merge_visibility(stored: Any) -> dict[AnnotationType, bool]:
    """Overlay stored flags on type-complete defaults.

    Unknown types and non-boolean values are dropped, so a cache written by a
    different version never leaves a type without a flag.
    """

    flags = dict(DEFAULT_VISIBILITY)
    if isinstance(stored, Mapping):
        for key, value in stored.items():
            if key in flags and isinstance(value, bool):
                flags[key] = value
    return flags


class VisibilityStore:
    """Per-type visibility flags kept in a local JSON key-value file.

    Reads and writes are best-effort: a missing, unreadable or corrupt file
    yields the defaults, and a failed write is logged and forgotten.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.debug("Ignoring unreadable visibility cache %s", self._path, exc_info=True)
            return {}
        return raw if isinstance(raw, dict) else {}

    def load(self) -> dict[AnnotationType, bool]:
        return merge_visibility(self._read_all().get(VISIBILITY_KEY))

    def save(self, flags: Mapping[AnnotationType, bool]) -> None:
        store = self._read_all()
        store[VISIBILITY_KEY] = dict(flags)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(store), encoding="utf-8")
        except OSError:
            logger.debug("Could not write visibility cache %s", self._path, exc_info=True)

    def toggle(
        self, flags: Mapping[AnnotationType, bool], type_: AnnotationType
    ) -> dict[AnnotationType, bool]:
        updated = merge_visibility(flags)
        updated[type_] = not updated[type_]
        self.save(updated)
        return updated
