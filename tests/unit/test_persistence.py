"""Tests for the debounced JSON storage service."""

import json
from pathlib import Path

from filemarks.core.storage.persistence import StorageService, repair_state
from filemarks.errors import ErrorCode, ErrorReporter
from filemarks.models.node import BookmarkNode, FilemarkState, FolderNode
from tests.unit.fakes import FakeScheduler, RecordingErrorListener


def _state(*paths: str) -> FilemarkState:
    return FilemarkState(
        items=[BookmarkNode(id=f"id-{p}", file_path=p, numbers={1: 0}) for p in paths]
    )


def _backups(path: Path) -> list[Path]:
    return sorted(path.parent.glob(f"{path.stem}.backup.*.json"))


def test_load_missing_file_returns_empty_state(storage: StorageService) -> None:
    state = storage.load()
    assert state.items == []
    assert state.version == "1.0"


def test_save_is_debounced_to_last_state(
    storage: StorageService, storage_path: Path, scheduler: FakeScheduler
) -> None:
    storage.save(_state("a.py"))
    scheduler.advance(0.3)
    storage.save(_state("b.py"))
    scheduler.advance(0.3)
    assert not storage_path.exists()
    scheduler.advance(0.3)
    data = json.loads(storage_path.read_text())
    assert [n["filePath"] for n in data["items"]] == ["b.py"]
    assert storage._num_writes == 1


def test_saved_document_loads_back(storage: StorageService, scheduler: FakeScheduler) -> None:
    state = FilemarkState(
        items=[FolderNode(id="f", name="F", children=[BookmarkNode(id="b", file_path="x.py", numbers={2: 4})])]
    )
    storage.save(state)
    scheduler.advance(1)
    assert storage.load() == state


def test_save_snapshots_state(storage: StorageService, storage_path: Path) -> None:
    """Mutations after save() do not leak into the pending write."""
    state = _state("a.py")
    storage.save(state)
    state.items.clear()
    storage.flush()
    assert len(json.loads(storage_path.read_text())["items"]) == 1


def test_flush_writes_immediately(storage: StorageService, storage_path: Path) -> None:
    storage.save(_state("a.py"))
    assert storage.has_pending_write
    storage.flush()
    assert storage_path.exists()
    assert not storage.has_pending_write


def test_close_writes_pending_state(storage: StorageService, storage_path: Path) -> None:
    storage.save(_state("a.py"))
    storage.close()
    assert storage_path.exists()


def test_unchanged_contents_are_not_rewritten(storage: StorageService) -> None:
    storage.save(_state("a.py"))
    storage.flush()
    storage.save(_state("a.py"))
    storage.flush()
    assert storage._num_writes == 1
    assert storage._num_same == 1


def test_written_json_is_indented(storage: StorageService, storage_path: Path) -> None:
    storage.save(_state("a.py"))
    storage.flush()
    assert storage_path.read_text().startswith('{\n  "version": "1.0"')


def test_unparsable_document_is_backed_up_and_reset(
    storage: StorageService, storage_path: Path, error_listener: RecordingErrorListener
) -> None:
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text("{not json")
    state = storage.load()
    assert state.items == []
    backups = _backups(storage_path)
    assert len(backups) == 1
    assert backups[0].read_text() == "{not json"
    assert error_listener.codes == [ErrorCode.JSON_PARSE]
    assert error_listener.notices[0].recovery is not None


def test_discard_recovery_removes_document(
    storage: StorageService, storage_path: Path, error_listener: RecordingErrorListener
) -> None:
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text("[[[")
    storage.load()
    error_listener.notices[0].recovery.action()
    assert not storage_path.exists()
    assert len(_backups(storage_path)) == 1


def test_invalid_utf8_is_treated_as_unparsable(
    storage: StorageService, storage_path: Path, error_listener: RecordingErrorListener
) -> None:
    storage_path.parent.mkdir(parents=True)
    storage_path.write_bytes(b"\xff\xfe\x00garbage")
    assert storage.load().items == []
    assert error_listener.codes == [ErrorCode.JSON_PARSE]


def test_wrong_shape_is_repaired_with_backup(
    storage: StorageService, storage_path: Path, error_listener: RecordingErrorListener
) -> None:
    document = {
        "version": "1.0",
        "items": [
            {"type": "bookmark", "id": "b1", "filePath": "a.py", "numbers": {"1": 3, "12": 4},
             "createdAt": "t", "updatedAt": "t"},
            {"type": "widget"},
        ],
    }
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text(json.dumps(document))
    state = storage.load()
    assert [b.numbers for b in state.items] == [{1: 3}]
    assert len(_backups(storage_path)) == 1
    assert error_listener.codes == [ErrorCode.CORRUPTED_DATA]


def test_backups_get_unique_names(storage: StorageService, storage_path: Path) -> None:
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text("{}")
    first = storage.create_backup()
    second = storage.create_backup()
    assert first is not None and second is not None
    assert first != second


def test_write_failure_is_reported(
    tmp_path: Path, scheduler: FakeScheduler, reporter: ErrorReporter, error_listener: RecordingErrorListener
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    storage = StorageService(blocker / "filemarks.json", scheduler=scheduler, reporter=reporter)
    storage.save(_state("a.py"))
    storage.flush()
    assert error_listener.codes == [ErrorCode.STORAGE_WRITE]


def test_repair_state_accepts_well_formed_document() -> None:
    state = _state("a.py", "b.py")
    repaired, problems = repair_state(state.to_dict())
    assert problems == []
    assert repaired == state


def test_repair_state_drops_duplicates_and_bad_marks() -> None:
    document = {
        "version": "1.0",
        "items": [
            {"type": "bookmark", "id": "x", "filePath": "a.py", "numbers": {"1": 2, "2": 2, "3": -1},
             "createdAt": "t", "updatedAt": "t"},
            {"type": "bookmark", "id": "x", "filePath": "b.py", "numbers": {"4": True, "5": 1},
             "createdAt": "t", "updatedAt": "t"},
            {"type": "bookmark", "id": "y", "filePath": "a.py", "numbers": {"1": 1},
             "createdAt": "t", "updatedAt": "t"},
            {"type": "folder", "id": "f", "name": "F", "createdAt": "t", "updatedAt": "t"},
        ],
    }
    state, problems = repair_state(document)
    assert problems
    first, second, folder = state.items
    assert first.numbers == {1: 2}
    assert second.numbers == {5: 1}
    assert second.id != "x"
    assert isinstance(folder, FolderNode)
    assert folder.children == []


def test_repair_state_rejects_non_object() -> None:
    state, problems = repair_state(["not", "a", "state"])
    assert state.items == []
    assert problems


def test_ten_saves_in_one_window_write_the_tenth_state(
    storage: StorageService, storage_path: Path, scheduler: FakeScheduler
) -> None:
    states = [_state(f"file{i}.py") for i in range(10)]
    for state in states:
        storage.save(state)
        scheduler.advance(0.01)
    assert not storage_path.exists()
    scheduler.advance(1)
    assert storage._num_writes == 1
    assert json.loads(storage_path.read_text()) == states[-1].to_dict()


def test_immediate_discard_keeps_a_backup(
    storage_path: Path, scheduler: FakeScheduler, reporter: ErrorReporter
) -> None:
    """A listener that discards as soon as it is notified still leaves one backup."""
    reporter.subscribe(lambda notice: notice.recovery.action())
    storage = StorageService(storage_path, scheduler=scheduler, reporter=reporter)
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text("{not json")
    assert storage.load().items == []
    assert not storage_path.exists()
    backups = _backups(storage_path)
    assert len(backups) == 1
    assert backups[0].read_text() == "{not json"


def test_immediate_discard_after_repair_keeps_a_backup(
    storage_path: Path, scheduler: FakeScheduler, reporter: ErrorReporter
) -> None:
    reporter.subscribe(lambda notice: notice.recovery.action())
    storage = StorageService(storage_path, scheduler=scheduler, reporter=reporter)
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text('{"items": []}')
    storage.load()
    assert not storage_path.exists()
    assert len(_backups(storage_path)) == 1


def test_discard_without_prior_backup_backs_up_first(storage: StorageService, storage_path: Path) -> None:
    storage_path.parent.mkdir(parents=True)
    storage_path.write_text('{"version": "1.0", "items": []}')
    storage.discard()
    assert not storage_path.exists()
    assert len(_backups(storage_path)) == 1
