"""File change monitor turning editor events into :class:`FileEdit` entries."""

from __future__ import annotations

import logging
import os
from collections import OrderedDict
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable

from ..config import ExtensionConfig
from ..events import EventChannel, Subscription
from ..filters import ExclusionFilter, normalize_path
from ..models import ChangeType, FileEdit, utcnow

logger = logging.getLogger(__name__)

# Editor and tooling noise that is never worth recapping.
BUILTIN_IGNORED_PATTERNS: tuple[str, ...] = (
    "*.tmp",
    "*.temp",
    "*~",
    "*.swp",
    "*.swo",
    "*.DS_Store",
    "*Thumbs.db",
    "*desktop.ini",
    ".vscode/*",
    ".idea/*",
    "node_modules/*",
    "*/node_modules/*",
    "dist/*",
    "build/*",
    "out/*",
    ".git/*",
    "*/.git/*",
    "__pycache__/*",
    "*/__pycache__/*",
    "*.pyc",
    "*.log",
    "*.log.?",
    "package-lock.json",
    "*/package-lock.json",
    "yarn.lock",
    "*/yarn.lock",
    "pnpm-lock.yaml",
    "*/pnpm-lock.yaml",
)

_MAX_LINE_COUNT_BYTES = 5 * 1024 * 1024


class FileChangeMonitor:
    """Tracks saved, created and deleted files for the current session.

    The host calls :meth:`file_saved`, :meth:`files_created` and
    :meth:`files_deleted`. Each admitted event replaces any earlier entry
    for the same path, so ``get_edited_files`` holds one entry per path,
    ordered by that path's most recent event.
    """

    def __init__(
        self,
        workspace_root: Path | None,
        config: ExtensionConfig,
        *,
        exclusion_filter: ExclusionFilter | None = None,
        ignore_builtin: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._workspace_root = Path(workspace_root).resolve() if workspace_root else None
        extra = BUILTIN_IGNORED_PATTERNS if ignore_builtin else ()
        self._filter = exclusion_filter or ExclusionFilter(config, extra_file_patterns=extra)
        self._clock = clock or utcnow
        self._edits: OrderedDict[str, FileEdit] = OrderedDict()
        self._changes: EventChannel[FileEdit] = EventChannel("file change")
        self._disposed = False

    def on_file_changed(self, callback: Callable[[FileEdit], None]) -> Subscription:
        return self._changes.subscribe(callback)

    def get_edited_files(self) -> list[FileEdit]:
        return list(self._edits.values())

    def reset(self) -> None:
        self._edits.clear()

    def update_config(self, config: ExtensionConfig) -> None:
        self._filter.update_config(config)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._changes.clear()
        self._edits.clear()

    def file_saved(self, path: str | os.PathLike[str], line_count: int | None = None) -> FileEdit | None:
        return self._record(path, ChangeType.MODIFIED, line_count)

    def files_created(self, paths: Iterable[str | os.PathLike[str]]) -> list[FileEdit]:
        admitted = (self._record(path, ChangeType.CREATED) for path in paths)
        return [edit for edit in admitted if edit is not None]

    def files_deleted(self, paths: Iterable[str | os.PathLike[str]]) -> list[FileEdit]:
        admitted = (self._record(path, ChangeType.DELETED) for path in paths)
        return [edit for edit in admitted if edit is not None]

    def relative_path(self, path: str | os.PathLike[str]) -> str:
        """Return ``path`` relative to the workspace root, POSIX separated."""

        raw = normalize_path(os.fspath(path)).strip()
        if not raw:
            return ""
        candidate = Path(raw)
        if self._workspace_root is not None and candidate.is_absolute():
            try:
                raw = candidate.resolve().relative_to(self._workspace_root).as_posix()
            except ValueError:
                return candidate.as_posix()
        return str(PurePosixPath(raw)).removeprefix("./")

    def _record(
        self,
        path: str | os.PathLike[str],
        change_type: ChangeType,
        line_count: int | None = None,
    ) -> FileEdit | None:
        if self._disposed:
            return None

        relative = self.relative_path(path)
        if not relative or self._filter.should_exclude_file(relative):
            logger.debug("Ignoring excluded file", extra={"file_path": relative})
            return None

        if line_count is None and change_type is not ChangeType.DELETED:
            line_count = self._count_lines(relative)

        edit = FileEdit(
            file_path=relative,
            timestamp=self._clock(),
            change_type=change_type,
            line_count=line_count,
        )
        self._edits.pop(relative, None)
        self._edits[relative] = edit
        self._changes.publish(edit)
        return edit

    def _count_lines(self, relative: str) -> int | None:
        target = Path(relative)
        if not target.is_absolute():
            if self._workspace_root is None:
                return None
            target = self._workspace_root / target
        try:
            if target.stat().st_size > _MAX_LINE_COUNT_BYTES:
                return None
            data = target.read_bytes()
        except OSError:
            return None
        if not data:
            return 0
        return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


__all__ = ["BUILTIN_IGNORED_PATTERNS", "FileChangeMonitor"]
