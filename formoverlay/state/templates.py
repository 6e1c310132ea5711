"""Template persistence backed by a single JSON file."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Protocol, Sequence

import structlog

from formoverlay.model.template import Template

logger = structlog.get_logger(__name__)


class TemplateStoreError(RuntimeError):
    """Raised when the template file cannot be read or written."""


class TemplateStore(Protocol):
    def save(self, templates: Sequence[Template]) -> None: ...

    def load(self) -> list[Template]: ...


class JsonTemplateStore:
    """Stores all templates as one JSON array, rewritten on every save.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> list[Template]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            templates = [Template.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise TemplateStoreError(f"Failed to read templates from: {self.path}") from exc
        logger.debug("templates.loaded", path=str(self.path), count=len(templates))
        return templates

    def save(self, templates: Sequence[Template]) -> None:
        payload = json.dumps([item.to_dict() for item in templates], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                prefix=".templates_", suffix=".json", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_path, self.path)
        except OSError as exc:
            raise TemplateStoreError(f"Failed to write templates to: {self.path}") from exc
        logger.debug("templates.saved", path=str(self.path), count=len(templates))
