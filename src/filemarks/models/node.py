"""Domain models for the bookmark tree."""

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from filemarks.config import STATE_VERSION


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class FolderNode:
    """A named container of other nodes."""

    id: str
    name: str
    children: list["TreeNode"] = field(default_factory=list)
    expanded: bool = True
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    type: Literal["folder"] = field(default="folder", init=False)


@dataclass
class BookmarkNode:
    """The per-file record of numbered line marks.

    ``numbers`` maps a mark number (0-9) to a 0-based line index.
    """

    id: str
    file_path: str
    numbers: dict[int, int] = field(default_factory=dict)
    label: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    type: Literal["bookmark"] = field(default="bookmark", init=False)


TreeNode = FolderNode | BookmarkNode


@dataclass
class FilemarkState:
    """The aggregate persisted state: a version tag and the root sequence."""

    version: str = STATE_VERSION
    items: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "items": [node_to_dict(n) for n in self.items]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilemarkState":
        """Build a state from a well-formed document. Raises on malformed input."""
        return cls(version=data["version"], items=[node_from_dict(n) for n in data["items"]])


@dataclass(frozen=True)
class MarkEntry:
    """A single numbered mark: which number, in which bookmark, at which line."""

    number: int
    bookmark: BookmarkNode
    line: int

    @property
    def file_path(self) -> str:
        return self.bookmark.file_path


def touch(node: TreeNode) -> None:
    """Bump updated_at, never moving it backwards."""
    stamp = now_iso()
    if stamp > node.updated_at:
        node.updated_at = stamp


def iter_nodes(items: list[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node in pre-order (the order shown in the tree)."""
    for node in items:
        yield node
        if isinstance(node, FolderNode):
            yield from iter_nodes(node.children)


def iter_bookmarks(items: list[TreeNode]) -> Iterator[BookmarkNode]:
    for node in iter_nodes(items):
        if isinstance(node, BookmarkNode):
            yield node


def node_to_dict(node: TreeNode) -> dict[str, Any]:
    """Serialize a node to its wire form."""
    if isinstance(node, FolderNode):
        return {
            "type": "folder",
            "id": node.id,
            "name": node.name,
            "children": [node_to_dict(c) for c in node.children],
            "expanded": node.expanded,
            "createdAt": node.created_at,
            "updatedAt": node.updated_at,
        }
    data: dict[str, Any] = {"type": "bookmark", "id": node.id}
    if node.label:
        data["label"] = node.label
    data["filePath"] = node.file_path
    data["numbers"] = {str(k): v for k, v in sorted(node.numbers.items())}
    data["createdAt"] = node.created_at
    data["updatedAt"] = node.updated_at
    return data


def node_from_dict(data: dict[str, Any]) -> TreeNode:
    """Parse a node from its wire form. Raises on malformed input."""
    node_type = data["type"]
    if node_type == "folder":
        return FolderNode(
            id=data["id"],
            name=data["name"],
            children=[node_from_dict(c) for c in data["children"]],
            expanded=bool(data.get("expanded", True)),
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
        )
    if node_type == "bookmark":
        return BookmarkNode(
            id=data["id"],
            file_path=data["filePath"],
            numbers={int(k): int(v) for k, v in data["numbers"].items()},
            label=data.get("label") or None,
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
        )
    msg = f"unexpected node type: {node_type!r}"
    raise ValueError(msg)
