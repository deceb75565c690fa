from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from session_recap.config import ExtensionConfig, parse_config
from session_recap.models import ChangeType, FileEdit
from session_recap.monitors import FileChangeMonitor


class StepClock:
    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def make_monitor(root: Path, config: ExtensionConfig | None = None) -> FileChangeMonitor:
    return FileChangeMonitor(root, config or ExtensionConfig(), clock=StepClock())


def test_repeated_saves_keep_one_entry_with_latest_event(tmp_path: Path) -> None:
    monitor = make_monitor(tmp_path)

    monitor.files_created([tmp_path / "src" / "a.ts"])
    first = monitor.get_edited_files()[0]
    monitor.file_saved(tmp_path / "src" / "a.ts")

    edits = monitor.get_edited_files()
    assert len(edits) == 1
    assert edits[0].file_path == "src/a.ts"
    assert edits[0].change_type is ChangeType.MODIFIED
    assert edits[0].timestamp > first.timestamp


def test_entries_are_ordered_by_latest_event(tmp_path: Path) -> None:
    monitor = make_monitor(tmp_path)

    monitor.file_saved("a.py", 1)
    monitor.file_saved("b.py", 1)
    monitor.file_saved("a.py", 2)

    assert [edit.file_path for edit in monitor.get_edited_files()] == ["b.py", "a.py"]


def test_delete_after_create_leaves_deleted_entry(tmp_path: Path) -> None:
    monitor = make_monitor(tmp_path)

    monitor.files_created(["tmp_notes.md"])
    monitor.files_deleted(["tmp_notes.md"])

    edits = monitor.get_edited_files()
    assert [(edit.file_path, edit.change_type) for edit in edits] == [("tmp_notes.md", ChangeType.DELETED)]
    assert edits[0].line_count is None


def test_recreated_file_ends_as_created(tmp_path: Path) -> None:
    monitor = make_monitor(tmp_path)

    monitor.files_deleted(["src/a.py"])
    monitor.files_created(["src/a.py"])

    assert monitor.get_edited_files()[0].change_type is ChangeType.CREATED


def test_excluded_paths_are_dropped_silently(tmp_path: Path) -> None:
    config = parse_config({"privacySettings": {"excludeFilePatterns": ["secrets/*"]}})
    monitor = make_monitor(tmp_path, config)
    seen: list[FileEdit] = []
    monitor.on_file_changed(seen.append)

    assert monitor.file_saved("secrets/token.txt") is None
    assert monitor.file_saved("node_modules/pkg/index.js") is None
    assert monitor.file_saved("app.swp") is None
    monitor.file_saved("src/main.py", 3)

    assert [edit.file_path for edit in seen] == ["src/main.py"]
    assert [edit.file_path for edit in monitor.get_edited_files()] == ["src/main.py"]


def test_builtin_ignores_can_be_disabled(tmp_path: Path) -> None:
    monitor = FileChangeMonitor(tmp_path, ExtensionConfig(), ignore_builtin=False)

    assert monitor.file_saved("app.swp", 1) is not None


def test_line_count_is_read_when_not_supplied(tmp_path: Path) -> None:
    target = tmp_path / "module.py"
    target.write_text("one\ntwo\nthree", encoding="utf-8")
    monitor = make_monitor(tmp_path)

    edit = monitor.file_saved(target)

    assert edit is not None
    assert edit.line_count == 3
    assert monitor.file_saved(tmp_path / "missing.py").line_count is None


def test_paths_outside_workspace_stay_absolute(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    monitor = make_monitor(workspace)

    assert monitor.relative_path(workspace / "pkg" / "mod.py") == "pkg/mod.py"
    assert monitor.relative_path("pkg\\mod.py") == "pkg/mod.py"
    assert monitor.relative_path(tmp_path / "elsewhere.py") == (tmp_path / "elsewhere.py").as_posix()


def test_reset_and_dispose(tmp_path: Path) -> None:
    monitor = make_monitor(tmp_path)
    seen: list[FileEdit] = []
    monitor.on_file_changed(seen.append)
    monitor.file_saved("a.py", 1)

    monitor.reset()
    assert monitor.get_edited_files() == []

    monitor.dispose()
    monitor.dispose()
    assert monitor.file_saved("b.py", 1) is None
    assert len(seen) == 1
