"""Tests for the bookmark domain models and their wire format."""

import pytest

from filemarks.models.node import (
    BookmarkNode,
    FilemarkState,
    FolderNode,
    iter_bookmarks,
    iter_nodes,
    node_from_dict,
    node_to_dict,
    touch,
)


def _sample_state() -> FilemarkState:
    inner = BookmarkNode(id="b2", file_path="src/b.py", numbers={3: 7})
    folder = FolderNode(id="f1", name="Work", children=[inner], expanded=False)
    top = BookmarkNode(id="b1", file_path="a.py", numbers={1: 0, 0: 4}, label="entry")
    return FilemarkState(items=[folder, top])


def test_bookmark_wire_format_uses_camel_case_and_string_keys() -> None:
    data = node_to_dict(BookmarkNode(id="b", file_path="x.py", numbers={5: 2, 1: 9}))
    assert data["type"] == "bookmark"
    assert data["filePath"] == "x.py"
    assert data["numbers"] == {"1": 9, "5": 2}
    assert list(data["numbers"]) == ["1", "5"]
    assert "createdAt" in data and "updatedAt" in data


def test_bookmark_without_label_omits_the_key() -> None:
    data = node_to_dict(BookmarkNode(id="b", file_path="x.py", numbers={1: 1}))
    assert "label" not in data


def test_folder_wire_format() -> None:
    data = node_to_dict(FolderNode(id="f", name="Docs"))
    assert data["type"] == "folder"
    assert data["children"] == []
    assert data["expanded"] is True


def test_state_survives_serialization() -> None:
    """A state read back from its dict form equals the original."""
    state = _sample_state()
    restored = FilemarkState.from_dict(state.to_dict())
    assert restored == state
    assert restored.to_dict() == state.to_dict()


def test_node_from_dict_rejects_unknown_type() -> None:
    with pytest.raises(ValueError, match="unexpected node type"):
        node_from_dict({"type": "shortcut", "id": "x"})


def test_iter_nodes_is_pre_order() -> None:
    ids = [n.id for n in iter_nodes(_sample_state().items)]
    assert ids == ["f1", "b2", "b1"]


def test_iter_bookmarks_skips_folders() -> None:
    paths = [b.file_path for b in iter_bookmarks(_sample_state().items)]
    assert paths == ["src/b.py", "a.py"]


def test_touch_never_moves_updated_at_backwards() -> None:
    node = BookmarkNode(id="b", file_path="x.py", updated_at="9999-01-01T00:00:00.000+00:00")
    touch(node)
    assert node.updated_at == "9999-01-01T00:00:00.000+00:00"


def test_touch_advances_stale_timestamp() -> None:
    node = FolderNode(id="f", name="n", updated_at="2000-01-01T00:00:00.000+00:00")
    touch(node)
    assert node.updated_at > "2000-01-01T00:00:00.000+00:00"
