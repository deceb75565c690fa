"""Records describing one tracked editing session."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


class ChangeType(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class ErrorType(str, Enum):
    ERROR = "error"
    WARNING = "warning"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id(now: datetime | None = None) -> str:
    """Return a globally unique session id, e.g. ``session-20250101120000-1a2b3c4d5e6f``."""

    stamp = (now or utcnow()).astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"session-{stamp}-{uuid4().hex[:12]}"


@dataclass(slots=True)
class FileEdit:
    file_path: str
    timestamp: datetime
    change_type: ChangeType
    line_count: int | None = None


@dataclass(slots=True)
class GitCommit:
    hash: str
    message: str
    author: str
    timestamp: datetime
    files_changed: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TerminalError:
    message: str
    timestamp: datetime
    terminal_name: str
    error_type: ErrorType = ErrorType.ERROR


@dataclass(slots=True)
class SessionData:
    """Aggregate record of one editing session.

    ``edited_files`` holds one entry per path, ``git_commits`` one entry per
    hash in ascending commit time, ``terminal_errors`` is append-only.
    """

    session_id: str
    start_time: datetime
    end_time: datetime | None = None
    edited_files: list[FileEdit] = field(default_factory=list)
    git_commits: list[GitCommit] = field(default_factory=list)
    terminal_errors: list[TerminalError] = field(default_factory=list)
    summary: str | None = None

    @classmethod
    def start(cls, now: datetime | None = None) -> "SessionData":
        now = now or utcnow()
        return cls(session_id=new_session_id(now), start_time=now)

    @property
    def is_empty(self) -> bool:
        return not (self.edited_files or self.git_commits or self.terminal_errors)

    def snapshot(self) -> "SessionData":
        """Return a deep copy that callers may freely mutate."""

        return copy.deepcopy(self)


__all__ = [
    "ChangeType",
    "ErrorType",
    "FileEdit",
    "GitCommit",
    "SessionData",
    "TerminalError",
    "new_session_id",
    "utcnow",
]
