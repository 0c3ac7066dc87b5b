"""Config store: the routing table persisted as one JSON document."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from mirror.core.errors import PersistenceFailed


class ConfigStore:
    """File-backed JSON map of source channel id -> persisted relay entry.

    Whole-document reads and writes only. The file stays human-editable between runs.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Read the document. Missing file is created empty; unreadable or invalid content means zero relays."""
        if not self._path.exists():
            try:
                self.save({})
            except PersistenceFailed as exc:
                logger.error("Could not create mirror state file {}: {}", self._path, exc)
            return {}

        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Error loading mirror state {}: {}", self._path, exc)
            return {}

        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Error loading mirror state {}: {}", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.error("Mirror state {} has invalid structure (expected object)", self._path)
            return {}
        return data

    def save(self, records: Mapping[str, Any]) -> None:
        """Replace the document with records. Raises PersistenceFailed."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(dict(records), f, indent=4)
                    f.write("\n")
                os.replace(tmp, self._path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceFailed(
                f"Failed to write mirror state {self._path}: {exc}",
                code="write_failed",
                details={"path": str(self._path)},
                original_error=exc,
            ) from exc
        logger.debug("Saved {} mirrors to {}", len(records), self._path)

