"""Tree navigation: numbered marks per file, globally, and next/previous lookups."""

from enum import StrEnum

from filemarks.core.tree.model import TreeModel
from filemarks.models.node import MarkEntry, iter_bookmarks


class Direction(StrEnum):
    NEXT = "next"
    PREVIOUS = "previous"


def numbers_in_file(tree: TreeModel, *, file_path: str) -> tuple[int, ...]:
    """Active mark numbers in a file, ascending."""
    bookmark = tree.find_bookmark_by_file_path(file_path)
    if bookmark is None:
        return ()
    return tuple(sorted(bookmark.numbers))


def marks_in_file(tree: TreeModel, *, file_path: str) -> tuple[MarkEntry, ...]:
    bookmark = tree.find_bookmark_by_file_path(file_path)
    if bookmark is None:
        return ()
    return tuple(
        MarkEntry(number=n, bookmark=bookmark, line=line)
        for n, line in sorted(bookmark.numbers.items())
    )


def all_marks_sorted(tree: TreeModel) -> tuple[MarkEntry, ...]:
    """Every mark in the tree, by number; ties keep tree order."""
    entries = [
        MarkEntry(number=n, bookmark=bookmark, line=line)
        for bookmark in iter_bookmarks(tree.items)
        for n, line in bookmark.numbers.items()
    ]
    return tuple(sorted(entries, key=lambda e: e.number))


def adjacent(
    tree: TreeModel,
    *,
    current: int | None,
    direction: Direction,
    file_path: str | None = None,
    current_file: str | None = None,
) -> MarkEntry | None:
    """Find the mark after or before current, wrapping around at the ends.

    Args:
        tree: The bookmark tree.
        current: The active mark number, or None to start from the edge
            (the first mark for NEXT, the last for PREVIOUS).
        direction: NEXT or PREVIOUS.
        file_path: Restrict to marks in this file. None searches the whole tree.
        current_file: For whole-tree searches, the file holding the active mark.
            Disambiguates when several files use the same number.

    Returns:
        The adjacent mark, or None when there are no marks in scope.
    """
    if file_path is not None:
        entries = marks_in_file(tree, file_path=file_path)
    else:
        entries = all_marks_sorted(tree)
    if not entries:
        return None

    forward = direction == Direction.NEXT
    if current is None:
        return entries[0] if forward else entries[-1]

    index = _find_index(entries, current, current_file, forward=forward)
    if index is not None:
        step = 1 if forward else -1
        return entries[(index + step) % len(entries)]

    # The active number is gone (e.g. just cleared): take the nearest by number.
    if forward:
        return next((e for e in entries if e.number > current), entries[0])
    return next((e for e in reversed(entries) if e.number < current), entries[-1])


def _find_index(
    entries: tuple[MarkEntry, ...], current: int, current_file: str | None, *, forward: bool
) -> int | None:
    """Index of the active mark.

    Without current_file, several files may hold the same number; take the last
    of them going forward and the first going backward, so the step always
    leaves the group.
    """
    matches = [i for i, entry in enumerate(entries) if entry.number == current]
    if not matches:
        return None
    if current_file is not None:
        for i in matches:
            if entries[i].file_path == current_file:
                return i
    return matches[-1] if forward else matches[0]
