"""Tests for markdown rendering of the bookmark tree."""

from filemarks.core.tree.markdown import render_tree_as_markdown
from filemarks.models.node import BookmarkNode, FolderNode


def _items() -> list:
    inner = FolderNode(id="f2", name="Deep", children=[BookmarkNode(id="b2", file_path="d.py", numbers={0: 0})])
    folder = FolderNode(
        id="f1",
        name="Work",
        children=[BookmarkNode(id="b1", file_path="src/a.py", numbers={3: 9, 1: 0}, label="entry"), inner],
    )
    return [folder, BookmarkNode(id="b3", file_path="top.py", numbers={5: 4})]


def test_renders_folders_bookmarks_and_marks() -> None:
    md = render_tree_as_markdown(_items())
    assert md.splitlines() == [
        "- **Work/**",
        "    - entry `src/a.py` [1,3]",
        "        - [1] line 1",
        "        - [3] line 10",
        "    - **Deep/**",
        "        - `d.py` [0]",
        "            - [0] line 1",
        "- `top.py` [5]",
        "    - [5] line 5",
    ]


def test_max_depth_truncates_folders() -> None:
    md = render_tree_as_markdown(_items(), max_depth=0, include_marks=False)
    assert md.splitlines() == [
        "- **Work/**",
        "    - ... (2 more children)",
        "- `top.py` [5]",
    ]


def test_include_ids() -> None:
    md = render_tree_as_markdown(_items(), include_marks=False, include_ids=True)
    assert "- **Work/** (id=f1)" in md
    assert "`top.py` [5] (id=b3)" in md


def test_empty_tree_renders_empty_string() -> None:
    assert render_tree_as_markdown([]) == ""
