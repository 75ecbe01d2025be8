"""CLI for filemarks: mark lines, list the tree, navigate between marks."""

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from filemarks.config import MAX_MARK_NUMBER, MIN_MARK_NUMBER, resolve_settings
from filemarks.core.timers import AsyncioScheduler
from filemarks.core.tree.markdown import render_tree_as_markdown
from filemarks.core.tree.navigation import Direction
from filemarks.errors import ErrorNotice, ErrorReporter
from filemarks.logging_config import configure_logging
from filemarks.models.node import FolderNode
from filemarks.store import BookmarkStore, create_store

app = typer.Typer(help="Filemarks: numbered line bookmarks per file, organized in folders.")

ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", "-p", help="Project root (default: current directory)"),
]
GlobalOption = Annotated[
    bool,
    typer.Option("--global", "-g", help="Use global storage instead of the project directory"),
]
FileArgument = Annotated[str, typer.Argument(help="File path (relative to the project)")]
NumberArgument = Annotated[
    int, typer.Argument(min=MIN_MARK_NUMBER, max=MAX_MARK_NUMBER, help="Mark number (0-9)")
]
LineArgument = Annotated[int, typer.Argument(min=1, help="Line number (1-based)")]
CurrentFileOption = Annotated[
    str | None,
    typer.Option("--current-file", help="File holding the --from mark (when several files use it)"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _echo_error(notice: ErrorNotice) -> None:
    message = f"{notice.error.severity}: {notice.error.message}"
    path = notice.error.context.get("path")
    if path:
        message += f" ({path})"
    typer.echo(message, err=True)


@contextmanager
def _open_store(project: Path | None, use_global: bool) -> Iterator[BookmarkStore]:
    """Load the project's bookmarks and write them back when the command ends."""
    settings = resolve_settings(project_root=project, save_in_project=False if use_global else None)
    reporter = ErrorReporter()
    reporter.subscribe(_echo_error)
    # The loop never runs; close() flushes the debounced write synchronously.
    loop = asyncio.new_event_loop()
    store = create_store(settings, scheduler=AsyncioScheduler(loop), reporter=reporter)
    try:
        store.initialize()
        yield store
    finally:
        store.close()
        loop.close()


def _relative(project: Path | None, file: str) -> str:
    """Normalize a file argument to a project-relative posix path."""
    root = resolve_settings(project_root=project).project_root
    path = Path(file).expanduser()
    if path.is_absolute():
        try:
            path = path.resolve().relative_to(root)
        except ValueError:
            logger.error("{} is outside the project {}", file, root)
            raise typer.Exit(1) from None
    return path.as_posix()


@app.command()
def show(
    project: ProjectOption = None,
    use_global: GlobalOption = False,
    ids: bool = typer.Option(False, "--ids", help="Show node ids"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output the raw document"),
) -> None:
    """Show the bookmark tree."""
    with _open_store(project, use_global) as store:
        if output_json:
            typer.echo(json.dumps(store.state.to_dict(), indent=2))
            return
        md = render_tree_as_markdown(store.state.items, include_ids=ids)
        typer.echo(md.rstrip("\n") if md else "No bookmarks.")


@app.command()
def toggle(
    file: FileArgument,
    number: NumberArgument,
    line: LineArgument,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Toggle mark NUMBER on LINE of FILE."""
    file_path = _relative(project, file)
    with _open_store(project, use_global) as store:
        store.toggle_mark(file_path, number, line - 1)
        marks = store.numbers_in_file(file_path)
        typer.echo(f"{file_path}: {list(marks) if marks else 'no marks'}")


@app.command(name="set")
def set_cmd(
    file: FileArgument,
    number: NumberArgument,
    line: LineArgument,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Put mark NUMBER on LINE of FILE, replacing its previous position."""
    file_path = _relative(project, file)
    with _open_store(project, use_global) as store:
        store.set_mark(file_path, number, line - 1)
        typer.echo(f"{file_path}: {list(store.numbers_in_file(file_path))}")


@app.command()
def clear(
    file: FileArgument,
    number: Annotated[
        int | None,
        typer.Argument(min=MIN_MARK_NUMBER, max=MAX_MARK_NUMBER, help="Mark to clear (default: all)"),
    ] = None,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Clear one mark, or every mark, in FILE."""
    file_path = _relative(project, file)
    with _open_store(project, use_global) as store:
        if number is None:
            store.clear_file(file_path)
        else:
            store.clear_mark(file_path, number)
        marks = store.numbers_in_file(file_path)
        typer.echo(f"{file_path}: {list(marks) if marks else 'no marks'}")


@app.command(name="clear-all")
def clear_all(
    project: ProjectOption = None,
    use_global: GlobalOption = False,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove every bookmark and folder."""
    if not yes:
        typer.confirm("Remove all bookmarks and folders?", abort=True)
    with _open_store(project, use_global) as store:
        store.clear_all()
        typer.echo("Cleared all bookmarks.")


@app.command()
def folder(
    name: str = typer.Argument(..., help="Folder name"),
    parent: Annotated[str | None, typer.Option("--parent", help="Parent folder id")] = None,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Create a folder."""
    with _open_store(project, use_global) as store:
        created = store.create_folder(name, parent)
        typer.echo(created.id)


@app.command()
def move(
    node_id: str = typer.Argument(..., help="Id of the folder or bookmark to move"),
    to: Annotated[str | None, typer.Option("--to", help="Target folder id (default: root)")] = None,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Move a node into a folder, or to the top level."""
    with _open_store(project, use_global) as store:
        if store.find_node(node_id) is None:
            typer.echo(f"Node '{node_id}' not found.")
            raise typer.Exit(1)
        store.move_node(node_id, to)
        parent = store.find_parent_folder(node_id)
        typer.echo(f"Moved to {parent.name if parent else 'top level'}.")


@app.command()
def rename(
    node_id: str = typer.Argument(..., help="Id of the folder or bookmark"),
    name: str = typer.Argument(..., help="New folder name or bookmark label ('' clears a label)"),
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Rename a folder or relabel a bookmark."""
    with _open_store(project, use_global) as store:
        node = store.find_node(node_id)
        if node is None:
            typer.echo(f"Node '{node_id}' not found.")
            raise typer.Exit(1)
        if isinstance(node, FolderNode):
            if not name.strip():
                typer.echo("Folder name must not be empty.")
                raise typer.Exit(1)
            store.rename_folder(node_id, name)
        else:
            store.relabel_bookmark(node_id, name)


@app.command()
def delete(
    node_id: str = typer.Argument(..., help="Id of the folder or bookmark"),
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Delete a bookmark, or a folder with everything in it."""
    with _open_store(project, use_global) as store:
        if store.find_node(node_id) is None:
            typer.echo(f"Node '{node_id}' not found.")
            raise typer.Exit(1)
        store.delete_node(node_id)


def _navigate(
    direction: Direction,
    current: int | None,
    file: str | None,
    current_file: str | None,
    project: Path | None,
    use_global: bool,
) -> None:
    file_path = _relative(project, file) if file else None
    current_path = _relative(project, current_file) if current_file else None
    with _open_store(project, use_global) as store:
        if file_path is not None:
            entry = store.adjacent_in_file(file_path, current, direction)
        else:
            entry = store.adjacent_global(current, direction, current_file=current_path)
        if entry is None:
            typer.echo("No bookmarks.")
            raise typer.Exit(1)
        typer.echo(f"[{entry.number}] {entry.file_path}:{entry.line + 1}")


@app.command(name="next")
def next_cmd(
    current: Annotated[int | None, typer.Option("--from", help="Currently active mark")] = None,
    file: Annotated[str | None, typer.Option("--file", "-f", help="Stay within this file")] = None,
    current_file: CurrentFileOption = None,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Show the mark after --from (wrapping around)."""
    _navigate(Direction.NEXT, current, file, current_file, project, use_global)


@app.command(name="prev")
def prev_cmd(
    current: Annotated[int | None, typer.Option("--from", help="Currently active mark")] = None,
    file: Annotated[str | None, typer.Option("--file", "-f", help="Stay within this file")] = None,
    current_file: CurrentFileOption = None,
    project: ProjectOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Show the mark before --from (wrapping around)."""
    _navigate(Direction.PREVIOUS, current, file, current_file, project, use_global)


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from filemarks.mcp.server import run_mcp_server

    run_mcp_server()
