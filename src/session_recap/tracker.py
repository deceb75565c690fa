"""Session tracker owning the live :class:`SessionData`."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from .config import ExtensionConfig
from .events import Subscription
from .models import FileEdit, GitCommit, SessionData, TerminalError, utcnow
from .monitors.base import CommitSource, ErrorSource, FileMonitor
from .storage import SessionStoreError
from .summary import SummaryService, generate_fallback_summary

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    STOPPED = "stopped"


class SessionStorage(Protocol):
    async def save_session(self, session: SessionData) -> None:
        ...

    async def load_last_session(self) -> SessionData | None:
        ...


class SessionDisplay(Protocol):
    def update_content(self, session: SessionData) -> None:
        ...


class SessionTracker:
    """Merges monitor events into one session and manages its lifecycle.

    All mutations happen synchronously; the only awaits are the commit
    query, storage and summarisation, and results arriving after the
    session was stopped or reset are dropped.
    """

    def __init__(
        self,
        config: ExtensionConfig,
        file_monitor: FileMonitor,
        commit_source: CommitSource,
        error_source: ErrorSource,
        storage: SessionStorage,
        *,
        display: SessionDisplay | None = None,
        summarizer: SummaryService | None = None,
        clock: Callable[[], datetime] | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._config = config
        self._file_monitor = file_monitor
        self._commit_source = commit_source
        self._error_source = error_source
        self._storage = storage
        self._display = display
        self._summarizer = summarizer
        self._clock = clock or utcnow
        self._poll_interval = poll_interval

        self._state = TrackerState.IDLE
        self._session = SessionData.start(self._clock())
        self._previous: SessionData | None = None
        self._previous_loaded = False
        self._subscriptions: list[Subscription] = []
        self._refresh_task: asyncio.Task[int] | None = None
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def config(self) -> ExtensionConfig:
        return self._config

    @property
    def is_tracking(self) -> bool:
        return self._state is TrackerState.TRACKING

    async def initialize(self) -> SessionData | None:
        """Load the previous session once; later calls return the cached value."""

        if not self._previous_loaded:
            self._previous_loaded = True
            self._previous = await self._storage.load_last_session()
            logger.info(
                "Previous session loaded",
                extra={"session_id": self._previous.session_id if self._previous else None},
            )
        return self.get_previous_session()

    def get_current_session(self) -> SessionData:
        return self._session.snapshot()

    def get_previous_session(self) -> SessionData | None:
        return self._previous.snapshot() if self._previous is not None else None

    def start_tracking(self) -> bool:
        if not self._config.enabled:
            logger.info("Session tracking disabled by configuration")
            return False
        if self._state is TrackerState.TRACKING:
            return True

        self._session = SessionData.start(self._clock())
        self._file_monitor.reset()
        self._error_source.reset()
        self._subscriptions = [
            self._file_monitor.on_file_changed(self._on_file_changed),
            self._error_source.on_terminal_error(self._on_terminal_error),
        ]
        self._state = TrackerState.TRACKING
        logger.info("Session tracking started", extra={"session_id": self._session.session_id})
        self.start_polling()
        self._push()
        return True

    def stop_tracking(self) -> None:
        if self._state is not TrackerState.TRACKING:
            return
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        self._state = TrackerState.STOPPED
        logger.info("Session tracking stopped", extra={"session_id": self._session.session_id})

    def reset(self) -> SessionData:
        """Start over with an empty session without leaving the current state."""

        self._session = SessionData.start(self._clock())
        self._file_monitor.reset()
        self._error_source.reset()
        logger.info("Session reset", extra={"session_id": self._session.session_id})
        self._push()
        return self.get_current_session()

    async def refresh_commits(self) -> int:
        """Pull commits made since the session started; return how many were new."""

        if self._state is not TrackerState.TRACKING or not self._commit_source.is_git_repository():
            return 0

        session_id = self._session.session_id
        commits = await self._commit_source.get_commits_since(self._session.start_time)
        if self._state is not TrackerState.TRACKING or self._session.session_id != session_id:
            logger.debug("Discarding stale commit results", extra={"session_id": session_id})
            return 0

        added = self._merge_commits(commits)
        if added:
            self._push()
        return added

    async def save_session(self) -> SessionData:
        if self._session.end_time is None:
            self._session.end_time = self._clock()
        snapshot = self._session.snapshot()
        try:
            await self._storage.save_session(snapshot)
        except (SessionStoreError, OSError) as exc:
            logger.error(
                "Failed to save session",
                extra={"session_id": snapshot.session_id, "error": str(exc)},
            )
            raise
        logger.info("Session saved", extra={"session_id": snapshot.session_id})
        self._push()
        return snapshot

    async def summarize(self) -> str:
        session_id = self._session.session_id
        snapshot = self._session.snapshot()
        if self._summarizer is not None:
            summary = await self._summarizer.generate_summary(snapshot)
        else:
            summary = generate_fallback_summary(snapshot)
        if self._session.session_id == session_id:
            self._session.summary = summary
            self._push()
        return summary

    def update_config(self, config: ExtensionConfig) -> None:
        self._config = config
        self._file_monitor.update_config(config)
        self._commit_source.update_config(config)
        if self._summarizer is not None:
            self._summarizer.update_config(config)
        if not config.enabled:
            self.stop_tracking()

    async def shutdown(self) -> None:
        self.stop_tracking()
        if self._refresh_task is not None and not self._refresh_task.done():
            await self._refresh_task
        try:
            await self.save_session()
        except (SessionStoreError, OSError):
            logger.warning("Session not persisted on shutdown", extra={"session_id": self._session.session_id})
        self._file_monitor.dispose()
        self._error_source.dispose()

    def _on_file_changed(self, edit: FileEdit) -> None:
        if self._state is not TrackerState.TRACKING:
            return
        files = [existing for existing in self._session.edited_files if existing.file_path != edit.file_path]
        files.append(edit)
        self._session.edited_files = files
        self._push()

    def _on_terminal_error(self, error: TerminalError) -> None:
        if self._state is not TrackerState.TRACKING:
            return
        self._session.terminal_errors.append(error)
        self._push()

    def _merge_commits(self, commits: list[GitCommit]) -> int:
        known = {commit.hash for commit in self._session.git_commits}
        added = 0
        # Incoming commits are newest first; walk them oldest first.
        for commit in reversed(commits):
            if commit.hash in known:
                continue
            known.add(commit.hash)
            self._session.git_commits.append(commit)
            added += 1
        if added:
            self._session.git_commits.sort(key=lambda commit: commit.timestamp)
        return added

    def start_polling(self) -> bool:
        """Schedule a commit refresh and the poll loop on the running event loop.

        Returns ``False`` when not tracking or when no loop is running.
        """

        if self._state is not TrackerState.TRACKING:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = loop.create_task(self._background_refresh())
        if self._poll_interval and self._poll_task is None:
            self._poll_task = loop.create_task(self._poll())
        return True

    async def _background_refresh(self) -> int:
        try:
            return await self.refresh_commits()
        except Exception:
            logger.exception("Background commit refresh failed")
            return 0

    async def _poll(self) -> None:
        while self._state is TrackerState.TRACKING:
            await asyncio.sleep(self._poll_interval)
            await self._background_refresh()

    def _push(self) -> None:
        if self._display is None:
            return
        try:
            self._display.update_content(self._session.snapshot())
        except Exception:
            logger.exception("Display update failed")


__all__ = ["SessionDisplay", "SessionStorage", "SessionTracker", "TrackerState"]
