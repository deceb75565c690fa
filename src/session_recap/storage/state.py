"""Small persisted key/value state kept apart from session files."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from .store import SessionStoreError, _write_atomic

logger = logging.getLogger(__name__)


class StateStore:
    """JSON document of flags such as ``sessionRecap.teamOptIn``."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file", extra={"path": str(self._path), "error": str(exc)})
            return {}
        return document if isinstance(document, dict) else {}

    async def get(self, key: str, default: Any = None) -> Any:
        document = await asyncio.to_thread(self._read)
        return document.get(key, default)

    async def update(self, key: str, value: Any) -> None:
        def _update() -> None:
            document = self._read()
            if value is None:
                document.pop(key, None)
            else:
                document[key] = value
            _write_atomic(self._path, json.dumps(document, indent=2, sort_keys=True))

        try:
            await asyncio.to_thread(_update)
        except OSError as exc:
            raise SessionStoreError(f"Failed to update state {key}: {exc}") from exc


__all__ = ["StateStore"]
