"""Terminal error monitor classifying terminal output lines."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Protocol

from ..events import EventChannel, Subscription
from ..models import ErrorType, TerminalError, utcnow

logger = logging.getLogger(__name__)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07]*(?:\x07|\x1b\\)")
_LINE_BREAK = re.compile(r"\r\n|\n|\r")

# Ordered: the first matching pattern decides the error type.
ERROR_PATTERNS: tuple[tuple[re.Pattern[str], ErrorType], ...] = (
    (re.compile(r"^\s*(?:error|fatal|panic)\b\s*(?:\[[^\]]*\])?\s*[:!]", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*[\w.$]*(?:Error|Exception)\b\s*:"), ErrorType.ERROR),
    (re.compile(r"^\s*Exception\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*Traceback \(most recent call last\)"), ErrorType.ERROR),
    (re.compile(r"\b(?:npm|pnpm)\s+ERR", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*(?:yarn|pnpm|git|cargo|go)\s+error\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"\b(?:build|compilation|test|tests)\s+failed\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*failed\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*FAIL(?:ED)?\b"), ErrorType.ERROR),
    (re.compile(r"\bcommand not found\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"\bpermission denied\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"\bno such file or directory\b", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"\bexit(?:ed)?\s+(?:with\s+)?(?:exit\s+)?(?:code|status)\s+[1-9]\d*", re.IGNORECASE), ErrorType.ERROR),
    (re.compile(r"^\s*(?:warning|warn)\b\s*(?:\[[^\]]*\])?\s*[:!]", re.IGNORECASE), ErrorType.WARNING),
    (re.compile(r"^\s*[\w.$]*Warning\b\s*:"), ErrorType.WARNING),
    (re.compile(r"^\s*deprecat(?:ed|ion)\b\s*:", re.IGNORECASE), ErrorType.WARNING),
)


class TerminalHandle(Protocol):
    name: str


def classify_line(line: str) -> ErrorType | None:
    """Return the error type for ``line`` or ``None`` for ordinary output."""

    for pattern, error_type in ERROR_PATTERNS:
        if pattern.search(line):
            return error_type
    return None


def split_output(text: str) -> list[str]:
    cleaned = _ANSI_ESCAPE.sub("", text)
    return [line.strip() for line in _LINE_BREAK.split(cleaned) if line.strip()]


class TerminalErrorMonitor:
    """Watches terminal output and publishes classified errors.

    Every match is published to subscribers; only the most recent one is
    kept for :meth:`get_last_error`.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or utcnow
        self._errors: EventChannel[TerminalError] = EventChannel("terminal error")
        self._last_error: TerminalError | None = None
        self._active_terminal: str | None = None
        self._attached: dict[int, tuple[Any, Any]] = {}
        self._disposed = False

    def on_terminal_error(self, callback: Callable[[TerminalError], None]) -> Subscription:
        return self._errors.subscribe(callback)

    def get_last_error(self) -> TerminalError | None:
        return self._last_error

    @property
    def active_terminal(self) -> str | None:
        return self._active_terminal

    def reset(self) -> None:
        self._last_error = None

    def terminal_opened(self, terminal: TerminalHandle) -> None:
        """Attach to a terminal's output stream once, when it exposes one."""

        if self._disposed or id(terminal) in self._attached:
            return
        subscribe = getattr(terminal, "on_did_write_data", None)
        if not callable(subscribe):
            logger.debug("Terminal does not expose output", extra={"terminal": terminal.name})
            return
        listener = subscribe(lambda data: self.process_output(data, terminal_name=terminal.name))
        self._attached[id(terminal)] = (terminal, listener)

    def terminal_closed(self, terminal: TerminalHandle) -> None:
        entry = self._attached.pop(id(terminal), None)
        if entry is not None:
            _release(entry[1])
        if self._active_terminal == terminal.name:
            self._active_terminal = None

    def active_terminal_changed(self, terminal: TerminalHandle | None) -> None:
        self._active_terminal = terminal.name if terminal is not None else None
        if terminal is not None:
            self.terminal_opened(terminal)

    def process_output(self, text: str, terminal_name: str | None = None) -> list[TerminalError]:
        """Classify each line of ``text`` and publish the matches in order."""

        if self._disposed:
            return []
        name = terminal_name or self._active_terminal or "Terminal"
        found: list[TerminalError] = []
        for line in split_output(text):
            error_type = classify_line(line)
            if error_type is None:
                continue
            error = TerminalError(
                message=line,
                timestamp=self._clock(),
                terminal_name=name,
                error_type=error_type,
            )
            self._last_error = error
            found.append(error)
            self._errors.publish(error)
        return found

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for _, listener in self._attached.values():
            _release(listener)
        self._attached.clear()
        self._errors.clear()


def _release(listener: Any) -> None:
    for name in ("dispose", "unsubscribe", "close"):
        method = getattr(listener, name, None)
        if callable(method):
            method()
            return
    if callable(listener):
        listener()


__all__ = ["ERROR_PATTERNS", "TerminalErrorMonitor", "TerminalHandle", "classify_line", "split_output"]
