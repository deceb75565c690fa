from __future__ import annotations

from datetime import datetime, timezone

import pytest

from session_recap.models import ErrorType, TerminalError
from session_recap.monitors import TerminalErrorMonitor, classify_line


class StubDisposable:
    def __init__(self) -> None:
        self.disposed = False

    def dispose(self) -> None:
        self.disposed = True


class StubTerminal:
    def __init__(self, name: str) -> None:
        self.name = name
        self.listeners = []
        self.disposables: list[StubDisposable] = []

    def on_did_write_data(self, listener):
        self.listeners.append(listener)
        disposable = StubDisposable()
        self.disposables.append(disposable)
        return disposable

    def write(self, data: str) -> None:
        for listener in list(self.listeners):
            listener(data)


def fixed_clock() -> datetime:
    return datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "line",
    [
        "error: cannot find module 'x'",
        "Error[E0308]: mismatched types",
        "fatal: not a git repository",
        "TypeError: Cannot read properties of undefined",
        "ModuleNotFoundError: No module named 'foo'",
        "Traceback (most recent call last):",
        "npm ERR! code ELIFECYCLE",
        "yarn error Command failed",
        "Build failed with 3 errors",
        "FAILED tests/test_app.py::test_home",
        "bash: foo: command not found",
        "Permission denied (publickey).",
        "cat: missing.txt: No such file or directory",
        "Process exited with code 2",
    ],
)
def test_error_vocabulary(line: str) -> None:
    assert classify_line(line) is ErrorType.ERROR


@pytest.mark.parametrize(
    "line",
    [
        "warning: unused variable `x`",
        "WARN: peer dependency missing",
        "DeprecationWarning: datetime.utcnow() is deprecated",
        "deprecated: use the new API",
    ],
)
def test_warning_vocabulary(line: str) -> None:
    assert classify_line(line) is ErrorType.WARNING


@pytest.mark.parametrize(
    "line",
    [
        "info: server started",
        "debug: cache hit",
        "Build completed successfully",
        "All tests passed",
        "Compiled 3 files, 0 errors",
        "exited with code 0",
    ],
)
def test_informational_lines_are_ignored(line: str) -> None:
    assert classify_line(line) is None


def test_process_output_publishes_every_match_and_keeps_last() -> None:
    monitor = TerminalErrorMonitor(clock=fixed_clock)
    seen: list[TerminalError] = []
    monitor.on_terminal_error(seen.append)

    found = monitor.process_output(
        "\x1b[31merror: first\x1b[0m\r\nall good\nwarning: second\r",
        terminal_name="bash",
    )

    assert [error.message for error in found] == ["error: first", "warning: second"]
    assert [error.error_type for error in seen] == [ErrorType.ERROR, ErrorType.WARNING]
    assert all(error.terminal_name == "bash" for error in seen)
    assert monitor.get_last_error() == seen[-1]

    monitor.reset()
    assert monitor.get_last_error() is None


def test_terminal_attachment_uses_terminal_name() -> None:
    monitor = TerminalErrorMonitor(clock=fixed_clock)
    seen: list[TerminalError] = []
    monitor.on_terminal_error(seen.append)
    terminal = StubTerminal("zsh")

    monitor.terminal_opened(terminal)
    monitor.active_terminal_changed(terminal)
    terminal.write("fatal: boom\n")

    assert len(terminal.listeners) == 1
    assert monitor.active_terminal == "zsh"
    assert [(error.terminal_name, error.message) for error in seen] == [("zsh", "fatal: boom")]

    monitor.terminal_closed(terminal)
    assert terminal.disposables[0].disposed
    assert monitor.active_terminal is None


def test_active_terminal_names_unattributed_output() -> None:
    monitor = TerminalErrorMonitor(clock=fixed_clock)
    monitor.active_terminal_changed(StubTerminal("pwsh"))

    errors = monitor.process_output("error: oops")

    assert errors[0].terminal_name == "pwsh"


def test_dispose_detaches_and_silences() -> None:
    monitor = TerminalErrorMonitor(clock=fixed_clock)
    seen: list[TerminalError] = []
    monitor.on_terminal_error(seen.append)
    terminal = StubTerminal("bash")
    monitor.terminal_opened(terminal)

    monitor.dispose()
    monitor.dispose()

    assert terminal.disposables[0].disposed
    assert monitor.process_output("error: late") == []
    assert seen == []
