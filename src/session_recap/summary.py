"""Natural-language session summaries."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from .config import ExtensionConfig
from .models import SessionData

logger = logging.getLogger(__name__)

AISummarizer = Callable[[SessionData, ExtensionConfig], Awaitable[str]]

NO_ACTIVITY_SUMMARY = "No significant activity detected in the last session."


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def generate_fallback_summary(session: SessionData) -> str:
    """Deterministic summary built from the session's counts."""

    parts: list[str] = []
    if session.edited_files:
        parts.append(f"modified {_plural(len(session.edited_files), 'file')}")
    if session.git_commits:
        parts.append(f"made {_plural(len(session.git_commits), 'commit')}")
    if session.terminal_errors:
        parts.append(f"encountered {_plural(len(session.terminal_errors), 'terminal error')}")
    if not parts:
        return NO_ACTIVITY_SUMMARY
    return f"In your last session, you {', '.join(parts)}."


class SummaryService:
    """Chooses between an injected AI summarizer and the fallback."""

    def __init__(self, config: ExtensionConfig, ai_summarizer: AISummarizer | None = None) -> None:
        self._config = config
        self._ai_summarizer = ai_summarizer

    @property
    def provider(self) -> str:
        return self._config.ai_provider if self.is_available() else "disabled"

    def update_config(self, config: ExtensionConfig) -> None:
        self._config = config

    def is_available(self) -> bool:
        return self._ai_summarizer is not None and self._config.ai_summary_enabled

    async def generate_summary(self, session: SessionData) -> str:
        if session.is_empty:
            return NO_ACTIVITY_SUMMARY
        if not self.is_available():
            return generate_fallback_summary(session)

        try:
            summary = (await self._ai_summarizer(session, self._config)).strip()
        except Exception as exc:
            logger.warning("AI summary failed, using fallback", extra={"error": str(exc)})
            return generate_fallback_summary(session)
        if not summary:
            logger.warning("AI summary was empty, using fallback")
            return generate_fallback_summary(session)
        return summary


__all__ = ["AISummarizer", "NO_ACTIVITY_SUMMARY", "SummaryService", "generate_fallback_summary"]
