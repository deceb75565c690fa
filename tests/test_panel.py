from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from session_recap.models import ChangeType, ErrorType, FileEdit, GitCommit, SessionData, TerminalError
from session_recap.panel import SessionPanel


NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def sample_session() -> SessionData:
    return SessionData(
        session_id="session-panel",
        start_time=NOW,
        edited_files=[FileEdit("src/a.ts", NOW, ChangeType.MODIFIED, 10)],
        git_commits=[GitCommit("0123456789abcdef", "feat: panel", "Ada", NOW, ["src/a.ts"])],
        terminal_errors=[TerminalError("error: boom", NOW, "bash", ErrorType.ERROR)],
        summary="Built the panel.",
    )


def test_update_content_keeps_latest_payload() -> None:
    panel = SessionPanel()

    assert panel.content is None
    assert panel.render_markdown() == "_No session data yet._"

    panel.update_content(sample_session())

    assert panel.update_count == 1
    assert panel.content["sessionId"] == "session-panel"
    assert panel.content["editedFiles"][0]["filePath"] == "src/a.ts"


def test_render_markdown_lists_activity() -> None:
    panel = SessionPanel()
    panel.update_content(sample_session())

    rendered = panel.render_markdown()

    assert rendered.startswith("# Session session-panel")
    assert "Built the panel." in rendered
    assert "## Edited files (1)" in rendered
    assert "- `src/a.ts` (modified)" in rendered
    assert "- 0123456 feat: panel (Ada)" in rendered
    assert "- [error] bash: error: boom" in rendered


def test_open_file_message_invokes_callback() -> None:
    opened: list[str] = []
    panel = SessionPanel(open_file=opened.append)

    assert asyncio.run(panel.handle_message({"command": "openFile", "filePath": "src/a.ts"}))
    assert opened == ["src/a.ts"]


def test_async_callbacks_are_awaited() -> None:
    events: list[str] = []

    async def open_file(path: str) -> None:
        events.append(f"open:{path}")

    async def refresh() -> None:
        events.append("refresh")

    panel = SessionPanel(open_file=open_file, refresh=refresh)

    assert asyncio.run(panel.handle_message({"command": "openFile", "filePath": "b.py"}))
    assert asyncio.run(panel.handle_message({"command": "refresh"}))
    assert events == ["open:b.py", "refresh"]


def test_unrecognised_messages_are_ignored() -> None:
    opened: list[str] = []
    panel = SessionPanel(open_file=opened.append)

    assert not asyncio.run(panel.handle_message({"command": "explode"}))
    assert not asyncio.run(panel.handle_message({"command": "openFile"}))
    assert not asyncio.run(panel.handle_message({"command": "refresh"}))
    assert opened == []
