"""Render the bookmark tree as markdown."""

import io

from filemarks.models.node import BookmarkNode, FolderNode, TreeNode


def render_tree_as_markdown(
    items: list[TreeNode],
    *,
    max_depth: int | None = None,
    include_marks: bool = True,
    include_ids: bool = False,
) -> str:
    """Render nodes and their descendants as an indented bullet list.

    Args:
        items: Top-level nodes to render.
        max_depth: Max folder levels to descend (None = unlimited).
        include_marks: List each mark under its bookmark.
        include_ids: Append node ids (for commands that take an id).

    Returns:
        Markdown string; empty if there are no nodes.
    """
    out = io.StringIO()
    _render(out, items, depth=0, max_depth=max_depth, include_marks=include_marks,
            include_ids=include_ids)
    return out.getvalue()


def _render(
    out: io.StringIO,
    nodes: list[TreeNode],
    *,
    depth: int,
    max_depth: int | None,
    include_marks: bool,
    include_ids: bool,
) -> None:
    indent = "    " * depth
    for node in nodes:
        suffix = f" (id={node.id})" if include_ids else ""
        if isinstance(node, FolderNode):
            out.write(f"{indent}- **{node.name}/**{suffix}\n")
            if max_depth is not None and depth >= max_depth:
                if node.children:
                    noun = "child" if len(node.children) == 1 else "children"
                    out.write(f"{indent}    - ... ({len(node.children)} more {noun})\n")
                continue
            _render(out, node.children, depth=depth + 1, max_depth=max_depth,
                    include_marks=include_marks, include_ids=include_ids)
        else:
            out.write(f"{indent}- {_bookmark_title(node)}{suffix}\n")
            if include_marks:
                for number, line in sorted(node.numbers.items()):
                    # Lines are stored 0-based and shown 1-based.
                    out.write(f"{indent}    - [{number}] line {line + 1}\n")


def _bookmark_title(bookmark: BookmarkNode) -> str:
    numbers = ",".join(str(n) for n in sorted(bookmark.numbers))
    if bookmark.label:
        return f"{bookmark.label} `{bookmark.file_path}` [{numbers}]"
    return f"`{bookmark.file_path}` [{numbers}]"
