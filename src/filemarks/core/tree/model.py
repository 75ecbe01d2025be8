"""Tree model: folders and bookmarks, and their structural mutations.

The tree stores downward links only. Parent lookups are traversals, which is
fine for trees of a few thousand nodes and keeps moves free of back-pointer
upkeep.

Every mutator returns True when it changed the tree and False for a no-op
(unknown id or path, rejected move). Lookup caches are cleared on every
change; callers decide when to persist and notify.
"""

from loguru import logger

from filemarks.config import LOOKUP_CACHE_SIZE, MAX_MARK_NUMBER, MIN_MARK_NUMBER
from filemarks.core.tracking.sticky import EditDelta, apply_edit_deltas
from filemarks.core.tree.cache import LookupCache
from filemarks.models.node import (
    BookmarkNode,
    FilemarkState,
    FolderNode,
    MarkEntry,
    TreeNode,
    iter_bookmarks,
    iter_nodes,
    new_id,
    touch,
)


def validate_mark(number: int, line: int) -> None:
    """Raise ValueError unless number is 0-9 and line is non-negative."""
    if not MIN_MARK_NUMBER <= number <= MAX_MARK_NUMBER:
        msg = f"mark number must be {MIN_MARK_NUMBER}-{MAX_MARK_NUMBER}, got {number!r}"
        raise ValueError(msg)
    if line < 0:
        msg = f"line must be non-negative, got {line!r}"
        raise ValueError(msg)


def _is_under(file_path: str, path: str) -> bool:
    return file_path == path or file_path.startswith(path.rstrip("/") + "/")


class TreeModel:
    """In-memory bookmark tree with cached lookups."""

    def __init__(self, state: FilemarkState | None = None, *, cache_size: int = LOOKUP_CACHE_SIZE) -> None:
        self.state = state or FilemarkState()
        self.cache = LookupCache(cache_size)

    def replace_state(self, state: FilemarkState) -> None:
        self.state = state
        self.cache.invalidate()

    @property
    def items(self) -> list[TreeNode]:
        return self.state.items

    # --- Lookups ---

    def find_bookmark_by_file_path(self, file_path: str) -> BookmarkNode | None:
        cached = self.cache.get_bookmark(file_path)
        if cached is not None:
            return cached
        for bookmark in iter_bookmarks(self.items):
            if bookmark.file_path == file_path:
                self.cache.put_bookmark(bookmark)
                return bookmark
        return None

    def find_folder_by_id(self, folder_id: str) -> FolderNode | None:
        cached = self.cache.get_folder(folder_id)
        if cached is not None:
            return cached
        for node in iter_nodes(self.items):
            if isinstance(node, FolderNode) and node.id == folder_id:
                self.cache.put_folder(node)
                return node
        return None

    def find_node(self, node_id: str) -> TreeNode | None:
        for node in iter_nodes(self.items):
            if node.id == node_id:
                return node
        return None

    def find_parent_folder(self, node_id: str) -> FolderNode | None:
        """Return the folder containing node_id, or None if it sits at the root or is unknown."""
        for node in iter_nodes(self.items):
            if isinstance(node, FolderNode) and any(c.id == node_id for c in node.children):
                return node
        return None

    def find_bookmark_by_number(self, number: int) -> MarkEntry | None:
        """First bookmark in tree order holding mark number."""
        for bookmark in iter_bookmarks(self.items):
            line = bookmark.numbers.get(number)
            if line is not None:
                return MarkEntry(number=number, bookmark=bookmark, line=line)
        return None

    def bookmarks_under(self, path: str) -> list[BookmarkNode]:
        """Bookmarks for path itself or for files below directory path."""
        return [b for b in iter_bookmarks(self.items) if _is_under(b.file_path, path)]

    # --- Mark mutations ---

    def toggle_mark(self, file_path: str, number: int, line: int) -> bool:
        """Create, move or remove mark number so that it ends up toggled at line."""
        validate_mark(number, line)
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is not None and bookmark.numbers.get(number) == line:
            del bookmark.numbers[number]
            self._after_numbers_removed(bookmark)
            self._mutated()
            return True
        self._assign(file_path, number, line, bookmark)
        return True

    def set_mark(self, file_path: str, number: int, line: int) -> bool:
        """Assign number -> line unconditionally."""
        validate_mark(number, line)
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is not None and bookmark.numbers.get(number) == line:
            return False
        self._assign(file_path, number, line, bookmark)
        return True

    def clear_mark(self, file_path: str, number: int) -> bool:
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is None or number not in bookmark.numbers:
            return False
        del bookmark.numbers[number]
        self._after_numbers_removed(bookmark)
        self._mutated()
        return True

    def remove_invalid_marks(self, file_path: str, line_count: int) -> bool:
        """Drop marks pointing at or past line_count (the file got shorter)."""
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is None:
            return False
        stale = [n for n, line in bookmark.numbers.items() if line >= line_count]
        if not stale:
            return False
        for number in stale:
            del bookmark.numbers[number]
        self._after_numbers_removed(bookmark)
        self._mutated()
        return True

    def apply_edits(self, file_path: str, deltas: list[EditDelta]) -> bool:
        """Shift marks in file_path to follow a batch of buffer edits."""
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is None:
            return False
        if not apply_edit_deltas(bookmark.numbers, deltas):
            return False
        self._after_numbers_removed(bookmark)
        self._mutated()
        return True

    # --- Structural mutations ---

    def create_folder(self, name: str, parent_id: str | None = None) -> FolderNode:
        """Append a new folder to parent_id, or to the root if parent_id is None or unknown."""
        folder = FolderNode(id=new_id(), name=name)
        parent = self.find_folder_by_id(parent_id) if parent_id else None
        if parent_id and parent is None:
            logger.debug("Parent folder {} not found, creating {!r} at root", parent_id, name)
        (parent.children if parent is not None else self.items).append(folder)
        self._mutated()
        return folder

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and its whole subtree."""
        if self._detach(node_id) is None:
            return False
        self._mutated()
        return True

    def rename_folder(self, folder_id: str, name: str) -> bool:
        folder = self.find_folder_by_id(folder_id)
        if folder is None:
            return False
        folder.name = name
        touch(folder)
        self._mutated()
        return True

    def relabel_bookmark(self, bookmark_id: str, label: str | None) -> bool:
        node = self.find_node(bookmark_id)
        if not isinstance(node, BookmarkNode):
            return False
        node.label = label or None
        touch(node)
        self._mutated()
        return True

    def set_folder_expanded(self, folder_id: str, expanded: bool) -> bool:
        folder = self.find_folder_by_id(folder_id)
        if folder is None or folder.expanded == expanded:
            return False
        folder.expanded = expanded
        self._mutated()
        return True

    def set_all_folders_expanded(self, expanded: bool) -> bool:
        changed = False
        for node in iter_nodes(self.items):
            if isinstance(node, FolderNode) and node.expanded != expanded:
                node.expanded = expanded
                changed = True
        if changed:
            self._mutated()
        return changed

    def move_node(self, node_id: str, target_folder_id: str | None) -> bool:
        """Re-parent node_id under target_folder_id (root if None or unknown).

        Moving a folder into itself or one of its descendants is rejected.
        """
        node = self.find_node(node_id)
        if node is None:
            return False
        target = self.find_folder_by_id(target_folder_id) if target_folder_id else None
        if target is not None and isinstance(node, FolderNode):
            if target is node or any(n is target for n in iter_nodes(node.children)):
                logger.debug("Rejected moving folder {} into its own subtree", node_id)
                return False
        self._detach(node_id)
        (target.children if target is not None else self.items).append(node)
        self._mutated()
        return True

    def rename_file_path(self, old_path: str, new_path: str) -> bool:
        """Point every bookmark at or under old_path to the matching path under new_path."""
        old_path, new_path = old_path.rstrip("/"), new_path.rstrip("/")
        moved = self.bookmarks_under(old_path)
        if not moved or old_path == new_path:
            return False
        moved_ids = {b.id for b in moved}
        for bookmark in moved:
            target = new_path + bookmark.file_path[len(old_path):]
            # The destination file was replaced; its old marks no longer apply.
            existing = self.find_bookmark_by_file_path(target)
            if existing is not None and existing.id not in moved_ids:
                logger.debug("Dropping bookmark {} replaced by rename to {}", existing.id, target)
                self._detach(existing.id)
            bookmark.file_path = target
            touch(bookmark)
            self.cache.invalidate()
        self._mutated()
        return True

    def clear_file(self, file_path: str) -> bool:
        bookmark = self.find_bookmark_by_file_path(file_path)
        if bookmark is None:
            return False
        self._detach(bookmark.id)
        self._mutated()
        return True

    def clear_all(self) -> bool:
        if not self.items:
            return False
        self.state.items = []
        self._mutated()
        return True

    # --- Internals ---

    def _assign(self, file_path: str, number: int, line: int, bookmark: BookmarkNode | None) -> None:
        if bookmark is None:
            bookmark = BookmarkNode(id=new_id(), file_path=file_path, numbers={number: line})
            self.items.append(bookmark)
        else:
            # A line carries at most one number.
            for other, other_line in list(bookmark.numbers.items()):
                if other != number and other_line == line:
                    del bookmark.numbers[other]
            bookmark.numbers[number] = line
            touch(bookmark)
        self._mutated()

    def _after_numbers_removed(self, bookmark: BookmarkNode) -> None:
        if bookmark.numbers:
            touch(bookmark)
        else:
            self._detach(bookmark.id)

    def _detach(self, node_id: str) -> TreeNode | None:
        """Remove node_id from whichever container holds it and return it."""
        containers = [self.items]
        while containers:
            nodes = containers.pop()
            for i, node in enumerate(nodes):
                if node.id == node_id:
                    return nodes.pop(i)
                if isinstance(node, FolderNode):
                    containers.append(node.children)
        return None

    def _mutated(self) -> None:
        self.cache.invalidate()
