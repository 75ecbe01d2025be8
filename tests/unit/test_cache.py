"""Tests for the LRU lookup caches."""

import pytest

from filemarks.core.tree.cache import LookupCache, LruCache
from filemarks.models.node import BookmarkNode, FolderNode


def test_evicts_least_recently_used() -> None:
    cache: LruCache[str, int] = LruCache(2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_set_existing_key_refreshes_recency() -> None:
    cache: LruCache[str, int] = LruCache(2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)
    assert cache.get("a") == 10
    assert cache.get("b") is None


def test_size_never_exceeds_capacity() -> None:
    cache: LruCache[int, int] = LruCache(3)
    for i in range(10):
        cache.set(i, i)
        assert len(cache) <= 3
    assert [k for k in range(10) if k in cache] == [7, 8, 9]


def test_clear_empties_cache() -> None:
    cache: LruCache[str, int] = LruCache(2)
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0
    assert cache.get("a") is None


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError, match="max_size"):
        LruCache(0)


def test_lookup_cache_counts_hits_and_misses() -> None:
    cache = LookupCache(4)
    bookmark = BookmarkNode(id="b", file_path="a.py", numbers={1: 1})
    assert cache.get_bookmark("a.py") is None
    cache.put_bookmark(bookmark)
    assert cache.get_bookmark("a.py") is bookmark
    assert (cache.hits, cache.misses) == (1, 1)


def test_lookup_cache_invalidate_clears_both_maps() -> None:
    cache = LookupCache(4)
    cache.put_bookmark(BookmarkNode(id="b", file_path="a.py", numbers={1: 1}))
    cache.put_folder(FolderNode(id="f", name="F"))
    cache.invalidate()
    assert cache.get_bookmark("a.py") is None
    assert cache.get_folder("f") is None
