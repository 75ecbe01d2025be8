"""Shared test fixtures."""

from pathlib import Path

import pytest

from filemarks.core.storage.persistence import StorageService
from filemarks.errors import ErrorReporter
from filemarks.store import BookmarkStore
from tests.unit.fakes import FakeScheduler, RecordingErrorListener, RecordingListener


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def error_listener() -> RecordingErrorListener:
    return RecordingErrorListener()


@pytest.fixture
def reporter(error_listener: RecordingErrorListener) -> ErrorReporter:
    """Error reporter with a recording listener attached."""
    reporter = ErrorReporter()
    reporter.subscribe(error_listener)
    return reporter


@pytest.fixture
def storage_path(tmp_path: Path) -> Path:
    return tmp_path / ".filemarks" / "filemarks.json"


@pytest.fixture
def storage(storage_path: Path, scheduler: FakeScheduler, reporter: ErrorReporter) -> StorageService:
    return StorageService(storage_path, scheduler=scheduler, reporter=reporter)


@pytest.fixture
def store(storage: StorageService, scheduler: FakeScheduler, reporter: ErrorReporter) -> BookmarkStore:
    """An initialized store over an empty document."""
    store = BookmarkStore(storage, scheduler=scheduler, reporter=reporter)
    store.initialize()
    return store


@pytest.fixture
def listener(store: BookmarkStore) -> RecordingListener:
    listener = RecordingListener()
    store.on_change(listener)
    return listener
