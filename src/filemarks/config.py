"""Configuration constants for filemarks."""

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

# Name of the persisted document, both project-local and legacy global.
STORAGE_FILE_NAME: str = "filemarks.json"

# Project-local storage lives in this directory under the project root.
PROJECT_STORAGE_DIR: str = ".filemarks"

# Global storage, used when bookmarks are not saved in the project.
DEFAULT_GLOBAL_STORAGE_DIR: Path = Path("~/.local/share/filemarks").expanduser()

STATE_VERSION: str = "1.0"

# Mark numbers are single digits.
MIN_MARK_NUMBER: int = 0
MAX_MARK_NUMBER: int = 9

SAVE_DEBOUNCE_SECONDS: float = 0.5
DELETE_GRACE_PERIOD_SECONDS: float = 1.0

# Capacity of each lookup cache (by file path, by folder id).
LOOKUP_CACHE_SIZE: int = 100

# File system events under these directories never reach reconciliation.
IGNORED_DIRECTORIES: tuple[str, ...] = (".git", ".hg", ".svn", PROJECT_STORAGE_DIR, ".vscode")

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    project_root: Path
    save_in_project: bool
    global_dir: Path


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def resolve_settings(
    *,
    project_root: Path | None = None,
    save_in_project: bool | None = None,
) -> Settings:
    """Resolve settings from arguments, then environment, then defaults.

    Environment variables:
        FILEMARKS_PROJECT_ROOT: Project root (default: current directory).
        FILEMARKS_SAVE_IN_PROJECT: Store bookmarks inside the project (default: true).
        FILEMARKS_GLOBAL_DIR: Directory for global storage.
    """
    if project_root is None:
        root_env = os.environ.get("FILEMARKS_PROJECT_ROOT")
        project_root = Path(root_env) if root_env else Path.cwd()
    if save_in_project is None:
        save_in_project = _env_flag("FILEMARKS_SAVE_IN_PROJECT", default=True)
    global_env = os.environ.get("FILEMARKS_GLOBAL_DIR")
    global_dir = Path(global_env).expanduser() if global_env else DEFAULT_GLOBAL_STORAGE_DIR
    return Settings(
        project_root=project_root.expanduser().resolve(),
        save_in_project=save_in_project,
        global_dir=global_dir,
    )


def is_ignored_path(relative_path: str) -> bool:
    """Return True if the path lies inside a metadata or version-control directory."""
    parts = PurePosixPath(relative_path.replace("\\", "/")).parts
    return any(part in IGNORED_DIRECTORIES for part in parts)
