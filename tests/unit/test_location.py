"""Tests for storage location rules and legacy migration."""

from pathlib import Path

from filemarks.config import Settings
from filemarks.core.storage.location import (
    global_storage_file_name,
    migrate_legacy_global_storage,
    prepare_storage_path,
    resolve_storage_path,
)
from filemarks.errors import ErrorReporter


def test_project_storage_lives_under_project(tmp_path: Path) -> None:
    settings = Settings(project_root=tmp_path / "proj", save_in_project=True, global_dir=tmp_path / "g")
    assert resolve_storage_path(settings) == tmp_path / "proj" / ".filemarks" / "filemarks.json"


def test_global_file_name_is_per_project(tmp_path: Path) -> None:
    first = global_storage_file_name(tmp_path / "one" / "app")
    second = global_storage_file_name(tmp_path / "two" / "app")
    assert first.startswith("filemarks-app-")
    assert first.endswith(".json")
    assert first != second


def test_global_file_name_sanitizes_folder_name(tmp_path: Path) -> None:
    name = global_storage_file_name(tmp_path / "my project!")
    assert name.startswith("filemarks-my_project_-")


def test_global_storage_path(tmp_path: Path) -> None:
    settings = Settings(project_root=tmp_path / "proj", save_in_project=False, global_dir=tmp_path / "g")
    path = resolve_storage_path(settings)
    assert path.parent == tmp_path / "g"


def test_legacy_file_is_migrated(tmp_path: Path) -> None:
    global_dir = tmp_path / "g"
    global_dir.mkdir()
    (global_dir / "filemarks.json").write_text('{"version": "1.0", "items": []}')
    target = global_dir / "filemarks-proj-abc123.json"
    assert migrate_legacy_global_storage(global_dir, target, ErrorReporter())
    assert target.exists()
    assert not (global_dir / "filemarks.json").exists()


def test_migration_never_overwrites(tmp_path: Path) -> None:
    global_dir = tmp_path / "g"
    global_dir.mkdir()
    (global_dir / "filemarks.json").write_text("legacy")
    target = global_dir / "filemarks-proj-abc123.json"
    target.write_text("current")
    assert not migrate_legacy_global_storage(global_dir, target, ErrorReporter())
    assert target.read_text() == "current"
    assert (global_dir / "filemarks.json").read_text() == "legacy"


def test_prepare_storage_path_skips_migration_for_project_storage(tmp_path: Path) -> None:
    global_dir = tmp_path / "g"
    global_dir.mkdir()
    (global_dir / "filemarks.json").write_text("legacy")
    settings = Settings(project_root=tmp_path / "proj", save_in_project=True, global_dir=global_dir)
    prepare_storage_path(settings, ErrorReporter())
    assert (global_dir / "filemarks.json").exists()
