"""Capability contracts the session tracker depends on."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol

from ..config import ExtensionConfig
from ..events import Subscription
from ..models import FileEdit, GitCommit, TerminalError


class FileMonitor(Protocol):
    """Source of deduplicated :class:`FileEdit` events."""

    def on_file_changed(self, callback: Callable[[FileEdit], None]) -> Subscription:
        ...

    def get_edited_files(self) -> list[FileEdit]:
        ...

    def reset(self) -> None:
        ...

    def update_config(self, config: ExtensionConfig) -> None:
        ...

    def dispose(self) -> None:
        ...


class CommitSource(Protocol):
    """Source of commits for the current workspace."""

    def is_git_repository(self) -> bool:
        ...

    async def get_commits_since(self, since: datetime) -> list[GitCommit]:
        ...

    async def get_current_branch(self) -> str | None:
        ...

    def update_config(self, config: ExtensionConfig) -> None:
        ...


class ErrorSource(Protocol):
    """Source of classified terminal errors."""

    def on_terminal_error(self, callback: Callable[[TerminalError], None]) -> Subscription:
        ...

    def get_last_error(self) -> TerminalError | None:
        ...

    def reset(self) -> None:
        ...

    def dispose(self) -> None:
        ...


__all__ = ["CommitSource", "ErrorSource", "FileMonitor"]
