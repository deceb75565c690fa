"""JSON file persistence for session records."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..models import SessionData
from .models import StoredSession

logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".session.json"
_SESSION_ID = re.compile(r"[A-Za-z0-9._-]+")


class SessionStoreError(RuntimeError):
    """Raised when a session cannot be written or deleted."""


def workspace_id_for(workspace_root: Path | str) -> str:
    """Return the identifier sessions of ``workspace_root`` are stamped with."""

    return base64.b64encode(str(workspace_root).encode("utf-8")).decode("ascii")


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class SessionStore:
    """Stores one JSON document per session under ``<root>/sessions``.

    Read paths never raise: a missing, unreadable or invalid document is
    reported as absent. ``save_session`` and ``delete_session`` raise
    :class:`SessionStoreError`.
    """

    def __init__(self, root: Path, *, workspace_id: str | None = None) -> None:
        self._root = Path(root)
        self._sessions_dir = self._root / "sessions"
        self._workspace_id = workspace_id

    @property
    def root(self) -> Path:
        return self._root

    @property
    def sessions_dir(self) -> Path:
        return self._sessions_dir

    @property
    def workspace_id(self) -> str | None:
        return self._workspace_id

    def session_path(self, session_id: str) -> Path:
        if not _SESSION_ID.fullmatch(session_id):
            raise ValueError(f"Invalid session id {session_id!r}")
        return self._sessions_dir / f"{session_id}{SESSION_SUFFIX}"

    async def save_session(self, session: SessionData) -> None:
        try:
            path = self.session_path(session.session_id)
            document = StoredSession.from_session_data(session, self._workspace_id or "")
            await asyncio.to_thread(_write_atomic, path, document.to_json())
        except (OSError, ValueError) as exc:
            raise SessionStoreError(f"Failed to save session {session.session_id}: {exc}") from exc
        logger.debug("Session saved", extra={"session_id": session.session_id})

    async def load_session(self, session_id: str) -> SessionData | None:
        stored = await self._load_stored(session_id)
        return stored.to_session_data() if stored is not None else None

    async def load_last_session(self) -> SessionData | None:
        """Return the session of this workspace with the latest start time."""

        latest: StoredSession | None = None
        for session_id in await self.get_all_session_ids():
            stored = await self._load_stored(session_id)
            if stored is None:
                continue
            if self._workspace_id is not None and stored.workspace_id != self._workspace_id:
                continue
            if latest is None or stored.start_time > latest.start_time:
                latest = stored
        return latest.to_session_data() if latest is not None else None

    async def get_all_session_ids(self) -> list[str]:
        def _list() -> list[str]:
            self._sessions_dir.mkdir(parents=True, exist_ok=True)
            return sorted(
                path.name[: -len(SESSION_SUFFIX)]
                for path in self._sessions_dir.glob(f"*{SESSION_SUFFIX}")
                if path.is_file()
            )

        try:
            return await asyncio.to_thread(_list)
        except OSError as exc:
            logger.warning("Unable to list sessions", extra={"error": str(exc)})
            return []

    async def delete_session(self, session_id: str) -> None:
        try:
            path = self.session_path(session_id)
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except (OSError, ValueError) as exc:
            raise SessionStoreError(f"Failed to delete session {session_id}: {exc}") from exc

    async def clear_all_sessions(self) -> None:
        for session_id in await self.get_all_session_ids():
            await self.delete_session(session_id)

    async def is_available(self) -> bool:
        """Probe the storage root with a throwaway write."""

        def _probe() -> None:
            self._sessions_dir.mkdir(parents=True, exist_ok=True)
            probe = self._sessions_dir / ".probe"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()

        try:
            await asyncio.to_thread(_probe)
        except OSError as exc:
            logger.warning("Session storage unavailable", extra={"error": str(exc)})
            return False
        return True

    async def _load_stored(self, session_id: str) -> StoredSession | None:
        try:
            path = self.session_path(session_id)
        except ValueError:
            return None
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Unable to read session", extra={"session_id": session_id, "error": str(exc)})
            return None
        try:
            return StoredSession.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring invalid session file", extra={"session_id": session_id, "error": str(exc)})
            return None


__all__ = ["SESSION_SUFFIX", "SessionStore", "SessionStoreError", "workspace_id_for"]
