"""Display endpoint receiving session snapshots and panel messages."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping

from .models import SessionData
from .storage import session_to_payload

logger = logging.getLogger(__name__)

OpenFileCallback = Callable[[str], Any]
RefreshCallback = Callable[[], Awaitable[Any]]


class SessionPanel:
    """Keeps the latest snapshot and answers ``openFile``/``refresh`` messages."""

    def __init__(
        self,
        *,
        open_file: OpenFileCallback | None = None,
        refresh: RefreshCallback | None = None,
    ) -> None:
        self._open_file = open_file
        self._refresh = refresh
        self._content: dict[str, Any] | None = None
        self._updates = 0

    @property
    def content(self) -> dict[str, Any] | None:
        return self._content

    @property
    def update_count(self) -> int:
        return self._updates

    def update_content(self, session: SessionData) -> None:
        self._content = session_to_payload(session)
        self._updates += 1

    async def handle_message(self, message: Mapping[str, Any]) -> bool:
        """Dispatch an inbound message; return ``False`` when it is not recognised."""

        command = message.get("command") if isinstance(message, Mapping) else None
        if command == "openFile":
            file_path = message.get("filePath")
            if not isinstance(file_path, str) or not file_path or self._open_file is None:
                return False
            result = self._open_file(file_path)
            if inspect.isawaitable(result):
                await result
            return True
        if command == "refresh":
            if self._refresh is None:
                return False
            await self._refresh()
            return True
        logger.debug("Ignoring unrecognised panel message", extra={"command": command})
        return False

    def render_markdown(self) -> str:
        if self._content is None:
            return "_No session data yet._"

        content = self._content
        lines = [f"# Session {content['sessionId']}", "", f"Started: {content['startTime']}"]
        if content.get("endTime"):
            lines.append(f"Ended: {content['endTime']}")
        if content.get("summary"):
            lines.extend(["", content["summary"]])

        lines.extend(["", f"## Edited files ({len(content['editedFiles'])})"])
        lines.extend(
            f"- `{edit['filePath']}` ({edit['changeType']})" for edit in content["editedFiles"]
        )
        lines.extend(["", f"## Commits ({len(content['gitCommits'])})"])
        lines.extend(
            f"- {commit['hash'][:7]} {commit['message']} ({commit['author']})"
            for commit in content["gitCommits"]
        )
        lines.extend(["", f"## Terminal errors ({len(content['terminalErrors'])})"])
        lines.extend(
            f"- [{error['errorType']}] {error['terminalName']}: {error['message']}"
            for error in content["terminalErrors"]
        )
        return "\n".join(lines)


__all__ = ["SessionPanel"]
