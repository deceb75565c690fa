from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import pytest

from session_recap.config import ConfigurationService, ExtensionConfig
from session_recap.monitors import FileChangeMonitor, GitActivityMonitor, TerminalErrorMonitor
from session_recap.panel import SessionPanel
from session_recap.storage import SessionStore, StateStore
from session_recap.team import InMemoryTeamChannel, TeamDataAggregator
from session_recap.tools import ToolHandles, register_tools
from session_recap.tracker import SessionTracker


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


@dataclass
class Harness:
    server: StubServer
    handles: ToolHandles
    tracker: SessionTracker
    store: SessionStore
    panel: SessionPanel
    channel: InMemoryTeamChannel | None


def build(tmp_path: Path, *, with_team: bool = False) -> Harness:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    config_service = ConfigurationService()
    config = config_service.current
    files = FileChangeMonitor(workspace, config)
    commits = GitActivityMonitor(workspace, config, None)
    errors = TerminalErrorMonitor()
    store = SessionStore(tmp_path / "store", workspace_id="ws")
    refreshed: list[int] = []

    async def refresh() -> None:
        refreshed.append(await tracker.refresh_commits())

    panel = SessionPanel(refresh=refresh)
    tracker = SessionTracker(config, files, commits, errors, store, display=panel)
    tracker.start_tracking()

    channel = None
    aggregator = None
    if with_team:
        channel = InMemoryTeamChannel()
        aggregator = TeamDataAggregator(
            config_service,
            StateStore(tmp_path / "state.json"),
            channel,
            workspace_root=workspace,
            member_id="ada",
        )

    server = StubServer()
    handles = register_tools(
        server,  # type: ignore[arg-type]
        tracker=tracker,
        store=store,
        file_monitor=files,
        terminal_monitor=errors,
        panel=panel,
        aggregator=aggregator,
    )
    return Harness(server, handles, tracker, store, panel, channel)


def test_all_tools_are_registered(tmp_path: Path) -> None:
    harness = build(tmp_path)

    assert set(harness.server._tools) == {
        "current_session",
        "previous_session",
        "refresh_session",
        "record_file_event",
        "record_terminal_output",
        "save_session",
        "reset_session",
        "summarize_session",
        "list_sessions",
        "load_session",
        "delete_session",
        "panel_message",
        "team_opt_in",
        "team_opt_out",
        "team_dashboard",
    }


def test_recorded_events_appear_in_current_session(tmp_path: Path) -> None:
    harness = build(tmp_path)
    handles = harness.handles

    created = handles.record_file_event.fn("src/a.ts", "created", line_count=4)  # type: ignore[attr-defined]
    saved = handles.record_file_event.fn("src/a.ts", line_count=10)  # type: ignore[attr-defined]
    ignored = handles.record_file_event.fn("node_modules/x/index.js")  # type: ignore[attr-defined]
    output = handles.record_terminal_output.fn("ok\nerror: boom", terminal_name="bash")  # type: ignore[attr-defined]

    assert created["admitted"] and saved["admitted"]
    assert ignored == {"admitted": False, "file": None}
    assert output["errors"][0]["terminalName"] == "bash"

    current = handles.current_session.fn()  # type: ignore[attr-defined]
    assert current["state"] == "tracking"
    edits = current["session"]["editedFiles"]
    assert [(edit["filePath"], edit["changeType"], edit["lineCount"]) for edit in edits] == [
        ("src/a.ts", "modified", 10)
    ]
    assert saved["file"]["changeType"] == "modified"
    assert [error["message"] for error in current["session"]["terminalErrors"]] == ["error: boom"]
    assert harness.panel.content["editedFiles"][0]["filePath"] == "src/a.ts"


def test_save_list_load_and_delete(tmp_path: Path) -> None:
    harness = build(tmp_path)
    handles = harness.handles
    handles.record_file_event.fn("a.py", line_count=1)  # type: ignore[attr-defined]

    saved = asyncio.run(handles.save_session.fn())  # type: ignore[attr-defined]
    session_id = saved["session"]["sessionId"]

    assert saved["shared"] is False
    assert saved["session"]["endTime"] is not None
    assert asyncio.run(handles.list_sessions.fn()) == {"count": 1, "session_ids": [session_id]}  # type: ignore[attr-defined]
    loaded = asyncio.run(handles.load_session.fn(session_id))  # type: ignore[attr-defined]
    assert loaded["session"]["editedFiles"][0]["filePath"] == "a.py"

    deleted = asyncio.run(handles.delete_session.fn(session_id))  # type: ignore[attr-defined]
    assert deleted == {"session_id": session_id, "deleted": True}
    with pytest.raises(ValueError, match="Unknown session"):
        asyncio.run(handles.load_session.fn(session_id))  # type: ignore[attr-defined]


def test_reset_summarize_and_previous(tmp_path: Path) -> None:
    harness = build(tmp_path)
    handles = harness.handles
    handles.record_file_event.fn("a.py", line_count=1)  # type: ignore[attr-defined]

    summary = asyncio.run(handles.summarize_session.fn())  # type: ignore[attr-defined]
    assert summary["summary"] == "In your last session, you modified 1 file."

    before = handles.current_session.fn()["session"]["sessionId"]  # type: ignore[attr-defined]
    reset = handles.reset_session.fn()  # type: ignore[attr-defined]
    assert reset["session"]["sessionId"] != before
    assert reset["session"]["editedFiles"] == []
    assert handles.previous_session.fn() == {"session": None}  # type: ignore[attr-defined]


def test_refresh_outside_repository_adds_nothing(tmp_path: Path) -> None:
    harness = build(tmp_path)

    result = asyncio.run(harness.handles.refresh_session.fn())  # type: ignore[attr-defined]

    assert result["added_commits"] == 0
    assert result["session"]["gitCommits"] == []


def test_panel_messages_are_routed(tmp_path: Path) -> None:
    harness = build(tmp_path)
    handles = harness.handles

    handled = asyncio.run(handles.panel_message.fn({"command": "refresh"}))  # type: ignore[attr-defined]
    unknown = asyncio.run(handles.panel_message.fn({"command": "dance"}))  # type: ignore[attr-defined]

    assert handled == {"handled": True, "command": "refresh"}
    assert unknown == {"handled": False, "command": "dance"}


def test_team_tools_require_configuration(tmp_path: Path) -> None:
    harness = build(tmp_path)

    with pytest.raises(RuntimeError, match="Team sharing is not configured"):
        asyncio.run(harness.handles.team_opt_in.fn())  # type: ignore[attr-defined]
    with pytest.raises(RuntimeError):
        asyncio.run(harness.handles.team_dashboard.fn())  # type: ignore[attr-defined]


def test_team_flow_shares_saved_sessions(tmp_path: Path) -> None:
    harness = build(tmp_path, with_team=True)
    handles = harness.handles

    dashboard = asyncio.run(handles.team_dashboard.fn())  # type: ignore[attr-defined]
    assert dashboard == {"available": False, "permissions": None, "team": None}

    assert asyncio.run(handles.team_opt_in.fn()) == {"opted_in": True}  # type: ignore[attr-defined]
    handles.record_file_event.fn("a.py", line_count=1)  # type: ignore[attr-defined]
    saved = asyncio.run(handles.save_session.fn())  # type: ignore[attr-defined]
    assert saved["shared"] is True
    assert "ada" in harness.channel.records

    dashboard = asyncio.run(handles.team_dashboard.fn())  # type: ignore[attr-defined]
    assert dashboard["available"] is True
    assert dashboard["permissions"]["teamId"] == "team-workspace"
    assert dashboard["team"]["members"][0]["hasOptedIn"] is True

    assert asyncio.run(handles.team_opt_out.fn()) == {"opted_in": False}  # type: ignore[attr-defined]
    assert harness.channel.records == {}


def test_default_configuration_is_used(tmp_path: Path) -> None:
    harness = build(tmp_path)

    assert harness.tracker.config == ExtensionConfig()
