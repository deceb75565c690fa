from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from session_recap.config import ExtensionConfig, parse_config
from session_recap.models import ChangeType, ErrorType, FileEdit, GitCommit, SessionData, TerminalError
from session_recap.summary import NO_ACTIVITY_SUMMARY, SummaryService, generate_fallback_summary


NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
AI_CONFIG = parse_config({"aiProvider": "local"})


def busy_session() -> SessionData:
    return SessionData(
        session_id="session-busy",
        start_time=NOW,
        edited_files=[
            FileEdit("a.py", NOW, ChangeType.MODIFIED),
            FileEdit("b.py", NOW, ChangeType.CREATED),
        ],
        git_commits=[GitCommit("abc", "feat: x", "Ada", NOW)],
        terminal_errors=[TerminalError(f"error: {n}", NOW, "bash", ErrorType.ERROR) for n in range(3)],
    )


def test_fallback_summary_counts() -> None:
    summary = generate_fallback_summary(busy_session())

    assert summary == "In your last session, you modified 2 files, made 1 commit, encountered 3 terminal errors."


def test_fallback_summary_without_activity() -> None:
    assert generate_fallback_summary(SessionData(session_id="s", start_time=NOW)) == NO_ACTIVITY_SUMMARY


def test_ai_summary_is_used_when_available() -> None:
    calls: list[ExtensionConfig] = []

    async def summarizer(session: SessionData, config: ExtensionConfig) -> str:
        calls.append(config)
        return "  Refactored the parser and fixed a build.  "

    service = SummaryService(AI_CONFIG, summarizer)

    assert service.is_available()
    assert service.provider == "local"
    assert asyncio.run(service.generate_summary(busy_session())) == "Refactored the parser and fixed a build."
    assert calls == [AI_CONFIG]


def test_ai_failures_fall_back(caplog: pytest.LogCaptureFixture) -> None:
    async def failing(session: SessionData, config: ExtensionConfig) -> str:
        raise TimeoutError("provider timed out")

    async def empty(session: SessionData, config: ExtensionConfig) -> str:
        return "   "

    expected = generate_fallback_summary(busy_session())
    with caplog.at_level(logging.WARNING):
        assert asyncio.run(SummaryService(AI_CONFIG, failing).generate_summary(busy_session())) == expected
        assert asyncio.run(SummaryService(AI_CONFIG, empty).generate_summary(busy_session())) == expected

    assert "AI summary failed" in caplog.text
    assert "AI summary was empty" in caplog.text


def test_disabled_provider_skips_ai() -> None:
    async def summarizer(session: SessionData, config: ExtensionConfig) -> str:
        raise AssertionError("should not be called")

    service = SummaryService(ExtensionConfig(), summarizer)

    assert not service.is_available()
    assert service.provider == "disabled"
    assert asyncio.run(service.generate_summary(busy_session())) == generate_fallback_summary(busy_session())

    service.update_config(parse_config({"aiProvider": "local", "enableAISummary": False}))
    assert not service.is_available()


def test_empty_session_never_reaches_ai() -> None:
    async def summarizer(session: SessionData, config: ExtensionConfig) -> str:
        raise AssertionError("should not be called")

    service = SummaryService(AI_CONFIG, summarizer)

    assert asyncio.run(service.generate_summary(SessionData(session_id="s", start_time=NOW))) == NO_ACTIVITY_SUMMARY
