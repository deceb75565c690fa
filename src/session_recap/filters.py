"""Privacy filters deciding which files and commits are never tracked."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable

from .config import ExtensionConfig
from .models import SessionData


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob-like pattern into a regex for full-string matching.

    ``*`` matches any run of characters (slashes included), ``?`` matches a
    single character, every other character is literal.
    """

    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


class ExclusionFilter:
    """Applies the configured exclude patterns.

    Compiled patterns are cached per pattern tuple, so swapping in a new
    configuration object recompiles on the next check.
    """

    def __init__(self, config: ExtensionConfig, *, extra_file_patterns: Iterable[str] = ()) -> None:
        self._config = config
        self._extra_file_patterns = tuple(extra_file_patterns)
        self._compiled_key: tuple[str, ...] | None = None
        self._compiled: list[re.Pattern[str]] = []

    @property
    def config(self) -> ExtensionConfig:
        return self._config

    def update_config(self, config: ExtensionConfig) -> None:
        self._config = config

    def _file_patterns(self) -> list[re.Pattern[str]]:
        key = self._config.privacy_settings.exclude_file_patterns + self._extra_file_patterns
        if key != self._compiled_key:
            self._compiled = [compile_glob(pattern) for pattern in key]
            self._compiled_key = key
        return self._compiled

    def should_exclude_file(self, path: str) -> bool:
        candidate = normalize_path(path)
        return any(regex.fullmatch(candidate) for regex in self._file_patterns())

    def should_exclude_commit(self, message: str) -> bool:
        haystack = message.lower()
        return any(
            pattern.lower() in haystack
            for pattern in self._config.privacy_settings.exclude_commit_patterns
        )

    def filter_session(self, session: SessionData) -> SessionData:
        """Return a copy of ``session`` with every excluded item removed."""

        snapshot = session.snapshot()
        snapshot.edited_files = [
            edit for edit in snapshot.edited_files if not self.should_exclude_file(edit.file_path)
        ]
        snapshot.git_commits = [
            replace(
                commit,
                files_changed=[
                    path for path in commit.files_changed if not self.should_exclude_file(path)
                ],
            )
            for commit in snapshot.git_commits
            if not self.should_exclude_commit(commit.message)
        ]
        return snapshot


__all__ = ["ExclusionFilter", "compile_glob", "normalize_path"]
