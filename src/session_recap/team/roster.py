"""Team roster loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .models import TeamMember


class RosterLoadError(RuntimeError):
    """Raised when one or more roster files cannot be parsed."""


class RosterLoader:
    """Loads team members from YAML files on disk.

    A file holds either one member mapping or a list of them.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, TeamMember]:
        """Load members from all search paths.

        Later search paths override earlier ones when member ids collide.
        """

        members: dict[str, TeamMember] = {}
        errors: list[str] = []

        for base in self._search_paths:
            for path in sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")):
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                entries = document if isinstance(document, list) else [document]
                for entry in entries:
                    try:
                        member = TeamMember.model_validate(entry)
                    except ValidationError as exc:
                        errors.append(f"Team member validation error in {path}: {exc}")
                        continue
                    members[member.id] = member

        if errors:
            raise RosterLoadError("; ".join(errors))

        return members


def load_roster(search_paths: Iterable[Path] | None = None) -> list[TeamMember]:
    """Convenience wrapper returning the roster in id order."""

    members = RosterLoader(search_paths).load_all()
    return [members[member_id] for member_id in sorted(members)]


__all__ = ["RosterLoadError", "RosterLoader", "load_roster"]
