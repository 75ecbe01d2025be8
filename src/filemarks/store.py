"""Bookmark store: the public face of the bookmark engine.

Composes the tree model, navigation, sticky tracking, persistence and
reconciliation. Every committed change is saved (debounced) and announced to
change listeners exactly once; ``batch()`` folds several changes into one.
"""

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from loguru import logger

from filemarks.config import DELETE_GRACE_PERIOD_SECONDS, LOOKUP_CACHE_SIZE, Settings
from filemarks.core.reconcile import Reconciler
from filemarks.core.storage.location import prepare_storage_path
from filemarks.core.storage.persistence import StorageService
from filemarks.core.tracking.sticky import EditDelta
from filemarks.core.tree import navigation
from filemarks.core.tree.model import TreeModel
from filemarks.core.tree.navigation import Direction
from filemarks.errors import ErrorReporter, FilemarkError
from filemarks.models.node import (
    BookmarkNode,
    FilemarkState,
    FolderNode,
    MarkEntry,
    TreeNode,
)
from filemarks.protocols import Scheduler

ChangeListener = Callable[[], None]


class BookmarkStore:
    """In-memory bookmark tree with persistence and change notification.

    Mutators return the current state. Unknown ids or paths and rejected moves
    are silent no-ops: they come from stale UI selections, not real faults.
    """

    def __init__(
        self,
        storage: StorageService,
        *,
        scheduler: Scheduler,
        reporter: ErrorReporter,
        grace_period: float = DELETE_GRACE_PERIOD_SECONDS,
        cache_size: int = LOOKUP_CACHE_SIZE,
    ) -> None:
        self.storage = storage
        self.tree = TreeModel(cache_size=cache_size)
        self.reconciler = Reconciler(
            self, scheduler=scheduler, reporter=reporter, grace_period=grace_period
        )
        self._reporter = reporter
        self._listeners: list[ChangeListener] = []
        self._batch_depth = 0
        self._batch_dirty = False
        self.last_used_folder_id: str | None = None

    def initialize(self) -> FilemarkState:
        """Load persisted state and announce it."""
        self.tree.replace_state(self.storage.load())
        logger.debug("Loaded {} top-level bookmark nodes", len(self.tree.items))
        self._notify()
        return self.state

    @property
    def state(self) -> FilemarkState:
        return self.tree.state

    def get_state(self) -> FilemarkState:
        return self.tree.state

    # --- Notification ---

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Call listener after each committed change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Commit every change made inside the block as a single save and notification."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._save_and_notify()

    # --- Queries ---

    def find_bookmark_by_file_path(self, file_path: str) -> BookmarkNode | None:
        return self.tree.find_bookmark_by_file_path(file_path)

    def find_bookmark_by_number(self, number: int) -> MarkEntry | None:
        return self.tree.find_bookmark_by_number(number)

    def find_folder_by_id(self, folder_id: str) -> FolderNode | None:
        return self.tree.find_folder_by_id(folder_id)

    def find_node(self, node_id: str) -> TreeNode | None:
        return self.tree.find_node(node_id)

    def find_parent_folder(self, node_id: str) -> FolderNode | None:
        return self.tree.find_parent_folder(node_id)

    def bookmarks_under(self, path: str) -> list[BookmarkNode]:
        return self.tree.bookmarks_under(path)

    def numbers_in_file(self, file_path: str) -> tuple[int, ...]:
        return navigation.numbers_in_file(self.tree, file_path=file_path)

    def all_marks_sorted(self) -> tuple[MarkEntry, ...]:
        return navigation.all_marks_sorted(self.tree)

    def adjacent_in_file(
        self, file_path: str, current: int | None, direction: Direction
    ) -> MarkEntry | None:
        return navigation.adjacent(
            self.tree, current=current, direction=direction, file_path=file_path
        )

    def adjacent_global(
        self, current: int | None, direction: Direction, *, current_file: str | None = None
    ) -> MarkEntry | None:
        return navigation.adjacent(
            self.tree, current=current, direction=direction, current_file=current_file
        )

    # --- Marks ---

    def toggle_mark(self, file_path: str, number: int, line: int) -> FilemarkState:
        return self._commit(self.tree.toggle_mark(file_path, number, line))

    def set_mark(self, file_path: str, number: int, line: int) -> FilemarkState:
        return self._commit(self.tree.set_mark(file_path, number, line))

    def clear_mark(self, file_path: str, number: int) -> FilemarkState:
        changed = self.tree.clear_mark(file_path, number)
        if not changed:
            self._not_found("mark", f"{file_path}:{number}")
        return self._commit(changed)

    def clear_file(self, file_path: str) -> FilemarkState:
        changed = self.tree.clear_file(file_path)
        if not changed:
            self._not_found("file", file_path)
        return self._commit(changed)

    def clear_all(self) -> FilemarkState:
        changed = self.tree.clear_all()
        self.last_used_folder_id = None
        return self._commit(changed)

    def remove_invalid_marks(self, file_path: str, line_count: int) -> FilemarkState:
        return self._commit(self.tree.remove_invalid_marks(file_path, line_count))

    def apply_edits(self, deltas: Iterable[EditDelta]) -> FilemarkState:
        """Run a batch of buffer edits through sticky tracking, committing once."""
        by_file: dict[str, list[EditDelta]] = {}
        for delta in deltas:
            by_file.setdefault(delta.file_path, []).append(delta)
        changed = False
        for file_path, file_deltas in by_file.items():
            changed = self.tree.apply_edits(file_path, file_deltas) or changed
        return self._commit(changed)

    # --- Nodes ---

    def create_folder(self, name: str, parent_id: str | None = None) -> FolderNode:
        """Create a folder and return it (the new state is available as ``state``)."""
        folder = self.tree.create_folder(name, parent_id)
        self.last_used_folder_id = folder.id
        self._commit(True)
        return folder

    def delete_node(self, node_id: str) -> FilemarkState:
        changed = self.tree.delete_node(node_id)
        if not changed:
            self._not_found("node", node_id)
        elif self.last_used_folder_id and self.tree.find_folder_by_id(self.last_used_folder_id) is None:
            self.last_used_folder_id = None
        return self._commit(changed)

    def rename_folder(self, folder_id: str, name: str) -> FilemarkState:
        changed = self.tree.rename_folder(folder_id, name)
        if not changed:
            self._not_found("folder", folder_id)
        return self._commit(changed)

    def relabel_bookmark(self, bookmark_id: str, label: str | None) -> FilemarkState:
        changed = self.tree.relabel_bookmark(bookmark_id, label)
        if not changed:
            self._not_found("bookmark", bookmark_id)
        return self._commit(changed)

    def set_folder_expanded(self, folder_id: str, expanded: bool) -> FilemarkState:
        return self._commit(self.tree.set_folder_expanded(folder_id, expanded))

    def set_all_folders_expanded(self, expanded: bool) -> FilemarkState:
        return self._commit(self.tree.set_all_folders_expanded(expanded))

    def move_node(self, node_id: str, target_folder_id: str | None) -> FilemarkState:
        if self.tree.find_node(node_id) is None:
            self._not_found("node", node_id)
            return self.state
        changed = self.tree.move_node(node_id, target_folder_id)
        if not changed:
            self._reporter.report_silent(
                FilemarkError.invalid_transform(
                    "cannot move a folder into itself or its descendant",
                    node_id=node_id,
                    target_folder_id=target_folder_id,
                )
            )
        elif target_folder_id and self.tree.find_folder_by_id(target_folder_id) is not None:
            self.last_used_folder_id = target_folder_id
        return self._commit(changed)

    def rename_file_path(self, old_path: str, new_path: str) -> FilemarkState:
        return self._commit(self.tree.rename_file_path(old_path, new_path))

    # --- File system events ---

    def file_deleted(self, path: str) -> None:
        self.reconciler.on_delete(path)

    def file_created(self, path: str) -> None:
        self.reconciler.on_create(path)

    def file_renamed(self, old_path: str, new_path: str) -> None:
        self.reconciler.on_rename(old_path, new_path)

    def commit_file_deletion(self, file_path: str) -> bool:
        changed = self.tree.clear_file(file_path)
        self._commit(changed)
        return changed

    def commit_file_rename(self, old_path: str, new_path: str) -> bool:
        changed = self.tree.rename_file_path(old_path, new_path)
        self._commit(changed)
        return changed

    # --- Lifecycle ---

    def flush(self) -> None:
        self.storage.flush()

    def close(self) -> None:
        """Drop pending deletions and write any pending state."""
        cache = self.tree.cache
        logger.debug("Lookup cache: {} hits, {} misses", cache.hits, cache.misses)
        self.reconciler.dispose()
        self.storage.close()

    # --- Internals ---

    def _commit(self, changed: bool) -> FilemarkState:
        if changed:
            if self._batch_depth:
                self._batch_dirty = True
            else:
                self._save_and_notify()
        return self.state

    def _save_and_notify(self) -> None:
        self.storage.save(self.state)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Bookmark change listener failed")

    def _not_found(self, what: str, key: str) -> None:
        self._reporter.report_silent(FilemarkError.not_found(what, key))


def create_store(
    settings: Settings,
    *,
    scheduler: Scheduler,
    reporter: ErrorReporter,
) -> BookmarkStore:
    """Wire a store to the document selected by settings (not yet loaded)."""
    path = prepare_storage_path(settings, reporter)
    storage = StorageService(path, scheduler=scheduler, reporter=reporter)
    return BookmarkStore(storage, scheduler=scheduler, reporter=reporter)
