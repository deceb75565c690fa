"""Version-control activity monitor built on :class:`GitRunner`."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ..config import ExtensionConfig
from ..filters import ExclusionFilter
from ..git import GitRunner, GitRunnerError
from ..models import GitCommit

logger = logging.getLogger(__name__)

MAX_FILES_PER_COMMIT = 50
BRANCH_CACHE_SECONDS = 30.0


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""

    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _split_files(fields: list[str]) -> list[str]:
    files: list[str] = []
    for chunk in fields:
        files.extend(part.strip() for part in chunk.split(",") if part.strip())
    return files


def parse_header(line: str) -> GitCommit | None:
    """Parse ``hash|message|author|isoTimestamp[|files]`` or return ``None``.

    The timestamp is located by parsing, so subjects containing ``|``
    survive. Inline files may be pipe- or comma-joined.
    """

    parts = line.split("|")
    if len(parts) < 4:
        return None
    commit_hash = parts[0].strip()
    if not commit_hash or any(char.isspace() for char in commit_hash):
        return None

    for index in range(3, len(parts)):
        timestamp = parse_timestamp(parts[index])
        if timestamp is None:
            continue
        return GitCommit(
            hash=commit_hash,
            message="|".join(parts[1 : index - 1]).strip(),
            author=parts[index - 1].strip(),
            timestamp=timestamp,
            files_changed=_split_files(parts[index + 1 :])[:MAX_FILES_PER_COMMIT],
        )
    return None


def parse_log_output(output: str) -> list[GitCommit]:
    """Parse ``git log`` output in log order.

    Accepts the ``--name-only`` block form, where changed files follow the
    header line until a blank line, as well as one-line-per-commit output.
    Lines that belong to no commit are skipped, and each commit keeps at most
    ``MAX_FILES_PER_COMMIT`` paths.
    """

    commits: list[GitCommit] = []
    current: GitCommit | None = None
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            current = None
            continue
        header = parse_header(line)
        if header is not None:
            commits.append(header)
            current = header
        elif line.count("|") >= 3:
            # Header-shaped but unparseable: drop it and whatever follows.
            logger.debug("Skipping malformed git log header", extra={"line": line[:200]})
            current = None
        elif current is not None:
            if len(current.files_changed) < MAX_FILES_PER_COMMIT:
                current.files_changed.append(line)
        else:
            logger.debug("Skipping malformed git log line", extra={"line": line[:200]})
    return commits


class GitActivityMonitor:
    """Queries the workspace repository for commits and the current branch.

    Every query degrades to an empty result: outside a repository, without a
    git executable, or when the command fails. Repository detection is cached
    until :meth:`clear_cache`; the branch name for ``BRANCH_CACHE_SECONDS``.
    """

    def __init__(
        self,
        workspace_root: Path | None,
        config: ExtensionConfig,
        runner: GitRunner | None,
        *,
        exclusion_filter: ExclusionFilter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._workspace_root = Path(workspace_root) if workspace_root else None
        self._config = config
        self._runner = runner
        self._filter = exclusion_filter or ExclusionFilter(config)
        self._clock = clock
        self._repository_checked = False
        self._repository: Path | None = None
        self._branch: tuple[float, str | None] | None = None

    @property
    def runner(self) -> GitRunner | None:
        return self._runner

    def update_config(self, config: ExtensionConfig) -> None:
        self._config = config
        self._filter.update_config(config)
        self.clear_cache()

    def clear_cache(self) -> None:
        self._repository_checked = False
        self._repository = None
        self._branch = None

    def repository_root(self) -> Path | None:
        if not self._repository_checked:
            self._repository = self._find_repository()
            self._repository_checked = True
        return self._repository

    def _find_repository(self) -> Path | None:
        if self._workspace_root is None:
            return None
        try:
            start = self._workspace_root.resolve()
            for candidate in (start, *start.parents):
                if (candidate / ".git").exists():
                    return candidate
        except OSError as exc:
            logger.debug("Repository lookup failed", extra={"error": str(exc)})
        return None

    def is_git_repository(self) -> bool:
        return self.repository_root() is not None

    async def get_commits_since(self, since: datetime) -> list[GitCommit]:
        if self._runner is None or not self.is_git_repository():
            return []
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        try:
            result = await self._runner.log_since(since)
        except GitRunnerError as exc:
            logger.warning("git log failed", extra={"error": str(exc)})
            return []
        if not result.ok:
            logger.warning(
                "git log exited with an error",
                extra={"returncode": result.returncode, "stderr": result.stderr.strip()[:400]},
            )
            return []

        commits = [
            commit
            for commit in parse_log_output(result.stdout)
            if commit.timestamp > since and not self._filter.should_exclude_commit(commit.message)
        ]
        # Stable sort keeps log order for identical timestamps.
        commits.sort(key=lambda commit: commit.timestamp, reverse=True)
        return commits[: self._config.max_commits_to_show]

    async def get_current_branch(self) -> str | None:
        if self._runner is None or not self.is_git_repository():
            return None
        now = self._clock()
        if self._branch is not None and now - self._branch[0] < BRANCH_CACHE_SECONDS:
            return self._branch[1]
        branch = await self._lookup_branch()
        self._branch = (now, branch)
        return branch

    async def _lookup_branch(self) -> str | None:
        try:
            result = await self._runner.current_branch()
        except GitRunnerError as exc:
            logger.warning("git branch lookup failed", extra={"error": str(exc)})
            return None
        if not result.ok:
            return None
        branch = result.stdout.strip()
        return branch or None


__all__ = [
    "BRANCH_CACHE_SECONDS",
    "MAX_FILES_PER_COMMIT",
    "GitActivityMonitor",
    "parse_header",
    "parse_log_output",
    "parse_timestamp",
]
