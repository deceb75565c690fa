"""Tool registration for the Session Recap MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from fastmcp import Context, FastMCP

from ..models import ChangeType, FileEdit, TerminalError
from ..monitors import FileChangeMonitor, TerminalErrorMonitor
from ..panel import SessionPanel
from ..storage import SessionStore, session_to_payload
from ..team import TeamDataAggregator
from ..tracker import SessionTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    current_session: Any
    previous_session: Any
    refresh_session: Any
    record_file_event: Any
    record_terminal_output: Any
    save_session: Any
    reset_session: Any
    summarize_session: Any
    list_sessions: Any
    load_session: Any
    delete_session: Any
    panel_message: Any
    team_opt_in: Any
    team_opt_out: Any
    team_dashboard: Any


def _file_payload(edit: FileEdit) -> dict[str, Any]:
    return {
        "filePath": edit.file_path,
        "timestamp": edit.timestamp.isoformat(),
        "changeType": edit.change_type.value,
        "lineCount": edit.line_count,
    }


def _error_payload(error: TerminalError) -> dict[str, Any]:
    return {
        "message": error.message,
        "timestamp": error.timestamp.isoformat(),
        "terminalName": error.terminal_name,
        "errorType": error.error_type.value,
    }


def register_tools(
    server: FastMCP,
    *,
    tracker: SessionTracker,
    store: SessionStore,
    file_monitor: FileChangeMonitor,
    terminal_monitor: TerminalErrorMonitor,
    panel: SessionPanel,
    aggregator: TeamDataAggregator | None,
) -> ToolHandles:
    """Register Session Recap's MCP tools on the server."""

    def _require_aggregator() -> TeamDataAggregator:
        if aggregator is None:
            raise RuntimeError("Team sharing is not configured; set RECAP_TEAM_SHARE_PATH")
        return aggregator

    def _current_session(context: Context | None = None) -> dict[str, Any]:
        """Return the live session snapshot."""

        session = tracker.get_current_session()
        _emit_log(context, "debug", "Current session requested", extra={"session_id": session.session_id})
        return {"state": tracker.state.value, "session": session_to_payload(session)}

    def _previous_session(context: Context | None = None) -> dict[str, Any]:
        previous = tracker.get_previous_session()
        return {"session": session_to_payload(previous) if previous is not None else None}

    async def _refresh_session(context: Context | None = None) -> dict[str, Any]:
        added = await tracker.refresh_commits()
        _emit_log(context, "info", "Refreshed commits", extra={"added": added})
        return {"added_commits": added, "session": session_to_payload(tracker.get_current_session())}

    def _record_file_event(
        path: str,
        change_type: Literal["created", "modified", "deleted"] = "modified",
        *,
        line_count: int | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Feed a host file event (save, create or delete) into the file monitor."""

        kind = ChangeType(change_type)
        if kind is ChangeType.MODIFIED:
            edits = [edit for edit in [file_monitor.file_saved(path, line_count)] if edit is not None]
        elif kind is ChangeType.CREATED:
            edits = file_monitor.files_created([path])
        else:
            edits = file_monitor.files_deleted([path])

        _emit_log(
            context,
            "debug",
            "Recorded file event",
            extra={"path": path, "change_type": kind.value, "admitted": bool(edits)},
        )
        return {"admitted": bool(edits), "file": _file_payload(edits[0]) if edits else None}

    def _record_terminal_output(
        text: str,
        terminal_name: str | None = None,
        *,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Classify terminal output and record any error or warning lines."""

        errors = terminal_monitor.process_output(text, terminal_name=terminal_name)
        if errors:
            _emit_log(context, "info", "Terminal errors detected", extra={"count": len(errors)})
        return {"errors": [_error_payload(error) for error in errors]}

    async def _save_session(context: Context | None = None) -> dict[str, Any]:
        snapshot = await tracker.save_session()
        shared = await aggregator.share_session_data(snapshot) if aggregator is not None else False
        _emit_log(
            context,
            "info",
            "Session saved",
            extra={"session_id": snapshot.session_id, "shared": shared},
        )
        return {"session": session_to_payload(snapshot), "shared": shared}

    def _reset_session(context: Context | None = None) -> dict[str, Any]:
        session = tracker.reset()
        _emit_log(context, "info", "Session reset", extra={"session_id": session.session_id})
        return {"session": session_to_payload(session)}

    async def _summarize_session(context: Context | None = None) -> dict[str, Any]:
        summary = await tracker.summarize()
        return {"session_id": tracker.get_current_session().session_id, "summary": summary}

    async def _list_sessions(context: Context | None = None) -> dict[str, Any]:
        session_ids = await store.get_all_session_ids()
        return {"count": len(session_ids), "session_ids": session_ids}

    async def _load_session(session_id: str, context: Context | None = None) -> dict[str, Any]:
        session = await store.load_session(session_id)
        if session is None:
            raise ValueError(f"Unknown session '{session_id}'")
        return {"session": session_to_payload(session)}

    async def _delete_session(session_id: str, context: Context | None = None) -> dict[str, Any]:
        await store.delete_session(session_id)
        _emit_log(context, "info", "Session deleted", extra={"session_id": session_id})
        return {"session_id": session_id, "deleted": True}

    async def _panel_message(message: dict[str, Any], context: Context | None = None) -> dict[str, Any]:
        """Deliver a display message such as ``{"command": "refresh"}``."""

        handled = await panel.handle_message(message)
        return {"handled": handled, "command": message.get("command")}

    async def _team_opt_in(context: Context | None = None) -> dict[str, Any]:
        team = _require_aggregator()
        await team.opt_in_to_team_sharing()
        _emit_log(context, "info", "Opted in to team sharing", extra={"member_id": team.member_id})
        return {"opted_in": await team.has_user_opted_in()}

    async def _team_opt_out(context: Context | None = None) -> dict[str, Any]:
        team = _require_aggregator()
        await team.opt_out_of_team_sharing()
        _emit_log(context, "info", "Opted out of team sharing", extra={"member_id": team.member_id})
        return {"opted_in": await team.has_user_opted_in()}

    async def _team_dashboard(context: Context | None = None) -> dict[str, Any]:
        team = _require_aggregator()
        permissions = await team.get_user_permissions()
        data = await team.get_team_session_data()
        return {
            "available": await team.is_team_dashboard_available(),
            "permissions": permissions.to_payload() if permissions is not None else None,
            "team": data.to_payload() if data is not None else None,
        }

    return ToolHandles(
        current_session=server.tool(
            name="current_session",
            description="Return the live session: edited files, commits and terminal errors.",
        )(_current_session),
        previous_session=server.tool(
            name="previous_session",
            description="Return the last session saved for this workspace, if any.",
        )(_previous_session),
        refresh_session=server.tool(
            name="refresh_session",
            description="Query git for commits made since the session started.",
        )(_refresh_session),
        record_file_event=server.tool(
            name="record_file_event",
            description="Record a saved, created or deleted file in the current session.",
        )(_record_file_event),
        record_terminal_output=server.tool(
            name="record_terminal_output",
            description="Scan terminal output for errors and warnings.",
        )(_record_terminal_output),
        save_session=server.tool(
            name="save_session",
            description="Persist the current session and share it with the team when opted in.",
        )(_save_session),
        reset_session=server.tool(
            name="reset_session",
            description="Clear the current session and start a fresh one.",
        )(_reset_session),
        summarize_session=server.tool(
            name="summarize_session",
            description="Produce a natural-language summary of the current session.",
        )(_summarize_session),
        list_sessions=server.tool(
            name="list_sessions",
            description="List the ids of all stored sessions.",
        )(_list_sessions),
        load_session=server.tool(
            name="load_session",
            description="Load a stored session by id.",
        )(_load_session),
        delete_session=server.tool(
            name="delete_session",
            description="Delete a stored session by id.",
        )(_delete_session),
        panel_message=server.tool(
            name="panel_message",
            description="Send an openFile or refresh message to the session panel.",
        )(_panel_message),
        team_opt_in=server.tool(
            name="team_opt_in",
            description="Opt in to sharing filtered session data with the team.",
        )(_team_opt_in),
        team_opt_out=server.tool(
            name="team_opt_out",
            description="Opt out of team sharing and withdraw any shared data.",
        )(_team_opt_out),
        team_dashboard=server.tool(
            name="team_dashboard",
            description="Return the aggregated team view when permitted.",
        )(_team_dashboard),
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["ToolHandles", "register_tools"]
