"""Sticky line tracking: keep marks on their lines while the buffer is edited.

This is a line-count heuristic, not a diff. Content cut from one place and
pasted elsewhere does not carry its marks along.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EditDelta:
    """One buffer change: lines start_line..end_line were replaced by inserted_line_count new lines.

    Lines are 0-based. A pure insertion has start_line == end_line.
    """

    file_path: str
    start_line: int
    end_line: int
    inserted_line_count: int

    @classmethod
    def from_text(cls, file_path: str, start_line: int, end_line: int, text: str) -> "EditDelta":
        """Build a delta from the replacement text of an edit range."""
        return cls(file_path, start_line, end_line, text.count("\n"))

    @property
    def line_delta(self) -> int:
        return self.inserted_line_count - (self.end_line - self.start_line)


def apply_edit_delta(numbers: dict[int, int], delta: EditDelta) -> bool:
    """Shift the marks in numbers (mark -> line) for one edit, in place.

    Marks at or before start_line stay put. Marks after it move by the net line
    delta. When lines were removed, marks on the removed lines are dropped.

    Returns:
        True if any mark moved or was dropped.
    """
    shift = delta.line_delta
    if shift == 0:
        return False

    changed = False
    for number, line in list(numbers.items()):
        if line <= delta.start_line:
            continue
        new_line = line + shift
        if new_line < 0 or (shift < 0 and line <= delta.start_line - shift):
            del numbers[number]
        else:
            numbers[number] = new_line
        changed = True
    return changed


def apply_edit_deltas(numbers: dict[int, int], deltas: list[EditDelta]) -> bool:
    """Apply a batch of edits in the order received."""
    changed = False
    for delta in deltas:
        changed = apply_edit_delta(numbers, delta) or changed
    return changed
