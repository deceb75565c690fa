"""Async runner for the git CLI."""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .utils import sanitize_environment

LOG_FORMAT = "%H|%s|%an|%aI"


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands asynchronously inside a working directory."""

    def __init__(
        self,
        cwd: Path,
        executable: Path | None = None,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._cwd = Path(cwd)
        self._timeout = timeout
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    @property
    def cwd(self) -> Path:
        return self._cwd

    async def version(self) -> GitExecutionResult:
        return await self._invoke("--version")

    async def log_since(self, since: datetime) -> GitExecutionResult:
        boundary = since.astimezone(timezone.utc).isoformat()
        return await self._invoke(
            "log",
            f"--since={boundary}",
            f"--pretty=format:{LOG_FORMAT}",
            "--name-only",
            "--no-color",
        )

    async def current_branch(self) -> GitExecutionResult:
        return await self._invoke("rev-parse", "--abbrev-ref", "HEAD")

    async def _invoke(self, *args: str) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self._cwd),
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise GitRunnerError(f"Failed to launch git: {exc}") from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise GitRunnerError(
                f"git {' '.join(args)} timed out after {self._timeout:g}s"
            ) from exc

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return GitExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeGitRunner(GitRunner):
    """Test double that simulates git responses."""

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[GitExecutionResult | Exception] | None = None,
        *,
        cwd: Path | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")
        self._cwd = Path(cwd or ".")
        self._timeout = 0.0

    def queue(self, response: GitExecutionResult | Exception) -> None:
        self._responses.append(response)

    async def _invoke(self, *args: str) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return GitExecutionResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations


def serialize_result(result: GitExecutionResult) -> str:
    """Serialize a command result for diagnostics output."""

    return json.dumps(
        {
            "args": list(result.args),
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
    )
