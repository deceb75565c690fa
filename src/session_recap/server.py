"""FastMCP server bootstrap for Session Recap."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import ConfigurationError, ConfigurationService, RecapSettings, get_settings, load_extension_config
from .filters import ExclusionFilter
from .git import GitNotFoundError, GitRunner, GitRunnerError
from .monitors import BUILTIN_IGNORED_PATTERNS, FileChangeMonitor, GitActivityMonitor, TerminalErrorMonitor
from .panel import SessionPanel
from .storage import SessionStore, StateStore, workspace_id_for
from .summary import SummaryService
from .team import DirectoryTeamChannel, RosterLoadError, TeamDataAggregator, load_roster
from .tools import register_tools
from .tracker import SessionTracker

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the Session Recap server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _run_sync(coro):
    """Execute an async coroutine on a dedicated event loop."""

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_server(
    settings: Optional[RecapSettings] = None,
    git_runner: GitRunner | None = None,
) -> FastMCP:
    """Wire the recap components and expose them over MCP."""

    settings = settings or get_settings()

    config_error: str | None = None
    try:
        config = load_extension_config(settings.config_path)
    except ConfigurationError as exc:
        config_error = str(exc)
        logger.error("Invalid extension configuration, using defaults", extra={"error": config_error})
        config = load_extension_config(None)
    config_service = ConfigurationService(config)

    git_metadata = {"available": False, "version": None, "error": None}
    if git_runner is None:
        try:
            git_runner = GitRunner(
                settings.workspace_root,
                Path(settings.git_path) if settings.git_path else None,
            )
        except GitNotFoundError as exc:
            git_metadata["error"] = str(exc)
            git_runner = None
    if git_runner is not None:
        git_metadata["available"] = True
        try:
            version_result = _run_sync(git_runner.version())
            if version_result.ok:
                git_metadata["version"] = version_result.stdout.strip()
            else:
                git_metadata["error"] = version_result.stderr.strip() or "git --version failed"
        except GitRunnerError as exc:
            git_metadata["error"] = str(exc)

    exclusion_filter = ExclusionFilter(config, extra_file_patterns=BUILTIN_IGNORED_PATTERNS)
    file_monitor = FileChangeMonitor(settings.workspace_root, config, exclusion_filter=exclusion_filter)
    git_monitor = GitActivityMonitor(settings.workspace_root, config, git_runner)
    terminal_monitor = TerminalErrorMonitor()

    store = SessionStore(settings.storage_path, workspace_id=workspace_id_for(settings.workspace_root))
    storage_metadata = {
        "path": str(store.sessions_dir),
        "available": _run_sync(store.is_available()),
    }

    async def _refresh_panel() -> None:
        await tracker.refresh_commits()

    panel = SessionPanel(
        open_file=lambda path: logger.info("Open file requested", extra={"file_path": path}),
        refresh=_refresh_panel,
    )
    tracker = SessionTracker(
        config,
        file_monitor,
        git_monitor,
        terminal_monitor,
        store,
        display=panel,
        summarizer=SummaryService(config),
        poll_interval=settings.git_poll_interval,
    )
    config_service.on_configuration_changed(tracker.update_config)

    team_metadata = {"enabled": False, "members": 0, "error": None}
    aggregator: TeamDataAggregator | None = None
    if settings.team_share_path is not None:
        members = []
        try:
            members = load_roster([settings.team_roster_path] if settings.team_roster_path else [])
        except RosterLoadError as exc:
            team_metadata["error"] = str(exc)
        aggregator = TeamDataAggregator(
            config_service,
            StateStore(settings.storage_path / "state.json"),
            DirectoryTeamChannel(settings.team_share_path),
            members=members,
            workspace_root=settings.workspace_root,
            member_id=settings.member_id,
        )
        team_metadata.update({"enabled": True, "members": len(members)})

    _run_sync(tracker.initialize())
    tracker.start_tracking()

    @asynccontextmanager
    async def lifespan(_server: FastMCP):
        tracker.start_polling()
        try:
            yield
        finally:
            await tracker.shutdown()

    server = FastMCP(
        name="Session Recap",
        version=__version__,
        lifespan=lifespan,
        instructions=(
            "Session Recap tracks edited files, git commits and terminal errors for the "
            "current workspace. Feed host events with record_file_event and "
            "record_terminal_output, read the live or previous session, and save it."
        ),
    )

    handles = register_tools(
        server,
        tracker=tracker,
        store=store,
        file_monitor=file_monitor,
        terminal_monitor=terminal_monitor,
        panel=panel,
        aggregator=aggregator,
    )

    @server.resource(
        "resource://session-recap/status",
        name="session_recap_status",
        title="Session Recap Status",
        description="Provides the current runtime status for the Session Recap server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        session = tracker.get_current_session()
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "workspace_root": str(settings.workspace_root),
            "tracker": {
                "state": tracker.state.value,
                "session_id": session.session_id,
                "edited_files": len(session.edited_files),
                "git_commits": len(session.git_commits),
                "terminal_errors": len(session.terminal_errors),
            },
            "config": {"enabled": config_service.current.enabled, "error": config_error},
            "git": {
                "repository": git_monitor.is_git_repository(),
                **git_metadata,
            },
            "storage": storage_metadata,
            "team": team_metadata,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "config_service", config_service)
    setattr(server, "tracker", tracker)
    setattr(server, "session_store", store)
    setattr(server, "panel", panel)
    setattr(server, "team_aggregator", aggregator)
    setattr(server, "git_metadata", git_metadata)
    setattr(server, "storage_metadata", storage_metadata)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the Session Recap server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logger.info(
        "Launching Session Recap server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "git_available": getattr(server, "git_metadata", {}).get("available"),
            "storage_available": getattr(server, "storage_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
