"""Transports carrying opted-in session records between teammates."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from ..storage.store import _write_atomic
from .models import SharedSessionRecord

logger = logging.getLogger(__name__)

_MEMBER_ID = re.compile(r"[A-Za-z0-9._@-]+")


class TeamChannel(Protocol):
    """Minimal transport used by :class:`TeamDataAggregator`."""

    async def publish(self, record: SharedSessionRecord) -> None:
        ...

    async def withdraw(self, member_id: str) -> None:
        ...

    async def fetch_all(self) -> dict[str, SharedSessionRecord]:
        ...


class InMemoryTeamChannel:
    """Process-local channel, handy for tests and single-user setups."""

    def __init__(self) -> None:
        self._records: dict[str, SharedSessionRecord] = {}

    @property
    def records(self) -> dict[str, SharedSessionRecord]:
        return dict(self._records)

    async def publish(self, record: SharedSessionRecord) -> None:
        self._records[record.member_id] = record

    async def withdraw(self, member_id: str) -> None:
        self._records.pop(member_id, None)

    async def fetch_all(self) -> dict[str, SharedSessionRecord]:
        return dict(self._records)


class DirectoryTeamChannel:
    """One ``<member>.json`` document per member inside a shared directory."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _record_path(self, member_id: str) -> Path:
        if not _MEMBER_ID.fullmatch(member_id):
            raise ValueError(f"Invalid member id {member_id!r}")
        return self._path / f"{member_id}.json"

    async def publish(self, record: SharedSessionRecord) -> None:
        await asyncio.to_thread(_write_atomic, self._record_path(record.member_id), record.to_json())

    async def withdraw(self, member_id: str) -> None:
        await asyncio.to_thread(self._record_path(member_id).unlink, missing_ok=True)

    async def fetch_all(self) -> dict[str, SharedSessionRecord]:
        def _read_all() -> dict[str, SharedSessionRecord]:
            records: dict[str, SharedSessionRecord] = {}
            if not self._path.is_dir():
                return records
            for path in sorted(self._path.glob("*.json")):
                try:
                    record = SharedSessionRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
                except (OSError, ValueError, json.JSONDecodeError, ValidationError) as exc:
                    logger.warning("Skipping unreadable team record", extra={"path": str(path), "error": str(exc)})
                    continue
                records[record.member_id] = record
            return records

        return await asyncio.to_thread(_read_all)


__all__ = ["DirectoryTeamChannel", "InMemoryTeamChannel", "TeamChannel"]
