"""MCP server exposing bookmark listing, marking and navigation tools."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from filemarks.config import MAX_MARK_NUMBER, MIN_MARK_NUMBER, resolve_settings
from filemarks.core.timers import AsyncioScheduler
from filemarks.core.tree.markdown import render_tree_as_markdown
from filemarks.core.tree.navigation import Direction
from filemarks.errors import ErrorReporter
from filemarks.models.node import BookmarkNode, FolderNode, MarkEntry, TreeNode
from filemarks.store import BookmarkStore, create_store


def _node_summary(node: TreeNode) -> dict[str, Any]:
    if isinstance(node, FolderNode):
        return {"id": node.id, "type": "folder", "name": node.name, "children": len(node.children)}
    summary: dict[str, Any] = {
        "id": node.id,
        "type": "bookmark",
        "file_path": node.file_path,
        "marks": {str(n): line + 1 for n, line in sorted(node.numbers.items())},
    }
    if node.label:
        summary["label"] = node.label
    return summary


def _entry(entry: MarkEntry) -> dict[str, Any]:
    return {"number": entry.number, "file_path": entry.file_path, "line": entry.line + 1}


def _check_number(number: int) -> str | None:
    if not MIN_MARK_NUMBER <= number <= MAX_MARK_NUMBER:
        return f"Mark number must be {MIN_MARK_NUMBER}-{MAX_MARK_NUMBER}, got {number}."
    return None


# --- Core functions (testable without MCP context) ---


def filemarks_list(
    store: BookmarkStore,
    *,
    file_path: str | None = None,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """List bookmarks: the whole tree, or the marks of one file.

    Lines are 1-based.

    Args:
        file_path: Only list marks in this file.
        response_format: "markdown" (tree outline) or "json" (mark entries).
    """
    if file_path is not None:
        bookmark = store.find_bookmark_by_file_path(file_path)
        if bookmark is None:
            return {"file_path": file_path, "marks": [], "count": 0}
        marks = [
            {"number": n, "line": line + 1} for n, line in sorted(bookmark.numbers.items())
        ]
        return {"file_path": file_path, "bookmark_id": bookmark.id, "marks": marks, "count": len(marks)}

    entries = store.all_marks_sorted()
    output: dict[str, Any] = {"count": len(entries)}
    if response_format == "json":
        output["marks"] = [_entry(e) for e in entries]
        output["items"] = [_node_summary(n) for n in store.state.items]
    else:
        output["markdown"] = render_tree_as_markdown(store.state.items, include_ids=True)
    return output


def filemarks_toggle(
    store: BookmarkStore,
    *,
    file_path: str,
    number: int,
    line: int,
) -> dict[str, Any]:
    """Toggle a numbered mark on a 1-based line of a file."""
    error = _check_number(number) or (None if line >= 1 else f"Line must be 1 or more, got {line}.")
    if error:
        return {"error": error}
    store.toggle_mark(file_path, number, line - 1)
    bookmark = store.find_bookmark_by_file_path(file_path)
    active = bookmark is not None and bookmark.numbers.get(number) == line - 1
    return {
        "file_path": file_path,
        "number": number,
        "line": line,
        "active": active,
        "numbers": list(store.numbers_in_file(file_path)),
    }


def filemarks_clear(
    store: BookmarkStore,
    *,
    file_path: str | None = None,
    number: int | None = None,
    clear_all: bool = False,
) -> dict[str, Any]:
    """Clear one mark, every mark in a file, or (with clear_all) everything."""
    if clear_all:
        store.clear_all()
        return {"cleared": "all"}
    if file_path is None:
        return {"error": "file_path is required unless clear_all is set."}
    if store.find_bookmark_by_file_path(file_path) is None:
        return {"error": f"No bookmarks in '{file_path}'."}
    if number is None:
        store.clear_file(file_path)
        return {"cleared": file_path, "numbers": []}
    error = _check_number(number)
    if error:
        return {"error": error}
    store.clear_mark(file_path, number)
    return {"cleared": file_path, "number": number, "numbers": list(store.numbers_in_file(file_path))}


def filemarks_navigate(
    store: BookmarkStore,
    *,
    direction: str = "next",
    current: int | None = None,
    file_path: str | None = None,
    current_file: str | None = None,
) -> dict[str, Any]:
    """Find the mark after or before ``current`` (wrapping around).

    Across files, ``current_file`` names the file holding the active mark when
    several files use the same number.
    """
    try:
        resolved = Direction(direction)
    except ValueError:
        return {"error": f"direction must be 'next' or 'previous', got '{direction}'."}
    if file_path is not None:
        entry = store.adjacent_in_file(file_path, current, resolved)
    else:
        entry = store.adjacent_global(current, resolved, current_file=current_file)
    if entry is None:
        return {"error": "No bookmarks."}
    return _entry(entry)


def filemarks_create_folder(
    store: BookmarkStore,
    *,
    name: str,
    parent_id: str | None = None,
) -> dict[str, Any]:
    """Create a folder, at the top level or inside parent_id."""
    if not name.strip():
        return {"error": "Folder name must not be empty."}
    if parent_id is not None and store.find_folder_by_id(parent_id) is None:
        return {"error": f"Folder '{parent_id}' not found."}
    folder = store.create_folder(name, parent_id)
    return {"id": folder.id, "name": folder.name, "parent_id": parent_id}


def filemarks_move(
    store: BookmarkStore,
    *,
    node_id: str,
    target_folder_id: str | None = None,
) -> dict[str, Any]:
    """Move a folder or bookmark into another folder, or to the top level."""
    node = store.find_node(node_id)
    if node is None:
        return {"error": f"Node '{node_id}' not found."}
    if target_folder_id is not None and store.find_folder_by_id(target_folder_id) is None:
        return {"error": f"Folder '{target_folder_id}' not found."}
    store.move_node(node_id, target_folder_id)
    after = store.find_parent_folder(node_id)
    if (after.id if after else None) != target_folder_id:
        return {"error": "A folder cannot be moved into itself or its descendants."}
    output: dict[str, Any] = {"id": node_id, "parent_id": target_folder_id}
    if isinstance(node, BookmarkNode):
        output["file_path"] = node.file_path
    return output


# --- Server ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: BookmarkStore
    reporter: ErrorReporter


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load bookmarks on startup, write pending changes on shutdown."""
    settings = resolve_settings()
    reporter = ErrorReporter()
    store = create_store(settings, scheduler=AsyncioScheduler(), reporter=reporter)
    store.initialize()
    logger.info("Serving bookmarks for {}", settings.project_root)
    try:
        yield ServerContext(store=store, reporter=reporter)
    finally:
        store.close()


mcp_server = FastMCP(
    "filemarks",
    instructions="""\
Filemarks are numbered line bookmarks (0-9) kept per file and organized in a
tree of folders. Line numbers in every tool are 1-based.

- filemarks_list_tool shows the tree (with node ids) or the marks of one file.
- filemarks_toggle_tool sets or removes a mark on a line.
- filemarks_navigate_tool jumps to the next or previous mark, wrapping around.
- Use node ids from filemarks_list_tool with filemarks_move_tool.
""",
    lifespan=server_lifespan,
)


def _store(mcp_ctx: Context) -> BookmarkStore:
    return mcp_ctx.request_context.lifespan_context.store  # type: ignore[union-attr]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def filemarks_list_tool(
    ctx: Context,
    file_path: str | None = None,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """List bookmarks as a tree outline, or the marks of a single file.

    Args:
        file_path: Project-relative path; when given, only that file's marks are listed.
        response_format: "markdown" for an outline with node ids, "json" for structured entries.
    """
    return filemarks_list(_store(ctx), file_path=file_path, response_format=response_format)


@mcp_server.tool()
async def filemarks_toggle_tool(ctx: Context, file_path: str, number: int, line: int) -> dict[str, Any]:
    """Toggle mark ``number`` (0-9) on ``line`` (1-based) of a file.

    If the mark is already on that line it is removed; otherwise it is moved there.
    """
    return filemarks_toggle(_store(ctx), file_path=file_path, number=number, line=line)


@mcp_server.tool()
async def filemarks_clear_tool(
    ctx: Context,
    file_path: str | None = None,
    number: int | None = None,
    clear_all: bool = False,
) -> dict[str, Any]:
    """Clear a mark, all marks in a file, or every bookmark and folder (clear_all=true)."""
    return filemarks_clear(_store(ctx), file_path=file_path, number=number, clear_all=clear_all)


@mcp_server.tool()
async def filemarks_navigate_tool(
    ctx: Context,
    direction: str = "next",
    current: int | None = None,
    file_path: str | None = None,
    current_file: str | None = None,
) -> dict[str, Any]:
    """Find the next or previous mark relative to the active mark number.

    Args:
        direction: "next" or "previous".
        current: Active mark number; omit to start from the first (or last) mark.
        file_path: Stay within this file; omit to navigate across all files.
        current_file: File holding the active mark, when navigating across files.
    """
    return filemarks_navigate(
        _store(ctx),
        direction=direction,
        current=current,
        file_path=file_path,
        current_file=current_file,
    )


@mcp_server.tool()
async def filemarks_create_folder_tool(
    ctx: Context, name: str, parent_id: str | None = None
) -> dict[str, Any]:
    """Create a bookmark folder, optionally inside another folder."""
    return filemarks_create_folder(_store(ctx), name=name, parent_id=parent_id)


@mcp_server.tool()
async def filemarks_move_tool(
    ctx: Context, node_id: str, target_folder_id: str | None = None
) -> dict[str, Any]:
    """Move a folder or bookmark into a folder (omit target_folder_id for the top level)."""
    return filemarks_move(_store(ctx), node_id=node_id, target_folder_id=target_folder_id)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from filemarks.logging_config import configure_logging

    log_file = os.environ.get("FILEMARKS_LOG_FILE")
    configure_logging(verbose=False, log_file=Path(log_file).expanduser() if log_file else None)
    mcp_server.run(transport="stdio")
