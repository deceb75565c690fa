"""Serialized shapes of persisted sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models import ChangeType, ErrorType, FileEdit, GitCommit, SessionData, TerminalError

CURRENT_SCHEMA_VERSION = "1.0.0"
SUPPORTED_SCHEMA_VERSIONS = frozenset({CURRENT_SCHEMA_VERSION})


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StoredFileEdit(_StoredModel):
    file_path: str = Field(..., alias="filePath")
    timestamp: datetime
    change_type: ChangeType = Field(..., alias="changeType")
    line_count: int | None = Field(default=None, alias="lineCount")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class StoredGitCommit(_StoredModel):
    hash: str
    message: str
    author: str
    timestamp: datetime
    files_changed: list[str] = Field(default_factory=list, alias="filesChanged")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class StoredTerminalError(_StoredModel):
    message: str
    timestamp: datetime
    terminal_name: str = Field(..., alias="terminalName")
    error_type: ErrorType = Field(default=ErrorType.ERROR, alias="errorType")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class StoredSession(_StoredModel):
    """One session document as written to ``<id>.session.json``."""

    session_id: str = Field(..., alias="sessionId")
    workspace_id: str = Field(default="", alias="workspaceId")
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    edited_files: list[StoredFileEdit] = Field(default_factory=list, alias="editedFiles")
    git_commits: list[StoredGitCommit] = Field(default_factory=list, alias="gitCommits")
    terminal_errors: list[StoredTerminalError] = Field(default_factory=list, alias="terminalErrors")
    summary: str | None = None
    version: str = CURRENT_SCHEMA_VERSION

    @model_validator(mode="before")
    @classmethod
    def _migrate(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        document = dict(data)
        if "summary" not in document and "aiSummary" in document:
            document["summary"] = document.pop("aiSummary")
        document.setdefault("version", CURRENT_SCHEMA_VERSION)
        if not isinstance(document["version"], str):
            raise ValueError(f"Session schema version must be a string, got {document['version']!r}")
        if document["version"] not in SUPPORTED_SCHEMA_VERSIONS:
            raise ValueError(f"Unsupported session schema version {document['version']!r}")
        return document

    @field_validator("start_time", "end_time")
    @classmethod
    def _times_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    @classmethod
    def from_session_data(cls, session: SessionData, workspace_id: str = "") -> "StoredSession":
        return cls(
            session_id=session.session_id,
            workspace_id=workspace_id,
            start_time=session.start_time,
            end_time=session.end_time,
            edited_files=[
                StoredFileEdit(
                    file_path=edit.file_path,
                    timestamp=edit.timestamp,
                    change_type=edit.change_type,
                    line_count=edit.line_count,
                )
                for edit in session.edited_files
            ],
            git_commits=[
                StoredGitCommit(
                    hash=commit.hash,
                    message=commit.message,
                    author=commit.author,
                    timestamp=commit.timestamp,
                    files_changed=list(commit.files_changed),
                )
                for commit in session.git_commits
            ],
            terminal_errors=[
                StoredTerminalError(
                    message=error.message,
                    timestamp=error.timestamp,
                    terminal_name=error.terminal_name,
                    error_type=error.error_type,
                )
                for error in session.terminal_errors
            ],
            summary=session.summary,
        )

    def to_session_data(self) -> SessionData:
        return SessionData(
            session_id=self.session_id,
            start_time=self.start_time,
            end_time=self.end_time,
            edited_files=[
                FileEdit(
                    file_path=edit.file_path,
                    timestamp=edit.timestamp,
                    change_type=edit.change_type,
                    line_count=edit.line_count,
                )
                for edit in self.edited_files
            ],
            git_commits=[
                GitCommit(
                    hash=commit.hash,
                    message=commit.message,
                    author=commit.author,
                    timestamp=commit.timestamp,
                    files_changed=list(commit.files_changed),
                )
                for commit in self.git_commits
            ],
            terminal_errors=[
                TerminalError(
                    message=error.message,
                    timestamp=error.timestamp,
                    terminal_name=error.terminal_name,
                    error_type=error.error_type,
                )
                for error in self.terminal_errors
            ],
            summary=self.summary,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


def session_to_payload(session: SessionData) -> dict[str, Any]:
    """Return the camelCase JSON-ready mapping for ``session``."""

    payload = StoredSession.from_session_data(session).model_dump(mode="json", by_alias=True)
    payload.pop("workspaceId", None)
    payload.pop("version", None)
    return payload


__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "StoredFileEdit",
    "StoredGitCommit",
    "StoredSession",
    "StoredTerminalError",
    "session_to_payload",
]
