"""Bounded LRU lookup caches over the bookmark tree."""

from collections import OrderedDict
from typing import Generic, TypeVar

from filemarks.config import LOOKUP_CACHE_SIZE
from filemarks.models.node import BookmarkNode, FolderNode

K = TypeVar("K")
V = TypeVar("V")

_CACHE_MISS = object()


class LruCache(Generic[K, V]):
    """Strict least-recently-used cache with a fixed capacity."""

    def __init__(self, max_size: int = LOOKUP_CACHE_SIZE) -> None:
        if max_size < 1:
            msg = f"max_size must be positive, got {max_size!r}"
            raise ValueError(msg)
        self.max_size = max_size
        self._data: OrderedDict[K, V] = OrderedDict()

    def get(self, key: K) -> V | None:
        value = self._data.get(key, _CACHE_MISS)
        if value is _CACHE_MISS:
            return None
        self._data.move_to_end(key)
        return value  # type: ignore[return-value]

    def set(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def clear(self) -> None:
        self._data.clear()


class LookupCache:
    """File-path -> bookmark and id -> folder caches.

    Only a performance aid: callers fall back to a full traversal on a miss,
    and every structural mutation clears both caches wholesale.
    """

    def __init__(self, max_size: int = LOOKUP_CACHE_SIZE) -> None:
        self.bookmarks_by_path: LruCache[str, BookmarkNode] = LruCache(max_size)
        self.folders_by_id: LruCache[str, FolderNode] = LruCache(max_size)
        self.hits = 0
        self.misses = 0

    def get_bookmark(self, file_path: str) -> BookmarkNode | None:
        return self._count(self.bookmarks_by_path.get(file_path))

    def put_bookmark(self, bookmark: BookmarkNode) -> None:
        self.bookmarks_by_path.set(bookmark.file_path, bookmark)

    def get_folder(self, folder_id: str) -> FolderNode | None:
        return self._count(self.folders_by_id.get(folder_id))

    def put_folder(self, folder: FolderNode) -> None:
        self.folders_by_id.set(folder.id, folder)

    def invalidate(self) -> None:
        self.bookmarks_by_path.clear()
        self.folders_by_id.clear()

    def _count(self, value: V | None) -> V | None:
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value
