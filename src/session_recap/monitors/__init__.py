"""Event monitors feeding the session tracker."""

from .base import CommitSource, ErrorSource, FileMonitor
from .files import BUILTIN_IGNORED_PATTERNS, FileChangeMonitor
from .git import GitActivityMonitor, parse_log_output
from .terminal import TerminalErrorMonitor, classify_line

__all__ = [
    "BUILTIN_IGNORED_PATTERNS",
    "CommitSource",
    "ErrorSource",
    "FileChangeMonitor",
    "FileMonitor",
    "GitActivityMonitor",
    "TerminalErrorMonitor",
    "classify_line",
    "parse_log_output",
]
