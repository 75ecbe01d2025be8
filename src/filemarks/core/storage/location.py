"""Where the bookmark document lives, and migration from the legacy global file."""

import hashlib
import re
from pathlib import Path

from loguru import logger

from filemarks.config import PROJECT_STORAGE_DIR, STORAGE_FILE_NAME, Settings
from filemarks.errors import ErrorReporter, FilemarkError


def project_storage_path(project_root: Path) -> Path:
    return project_root / PROJECT_STORAGE_DIR / STORAGE_FILE_NAME


def global_storage_file_name(project_root: Path) -> str:
    """Per-project file name inside the global directory.

    Combines a readable folder name with a short hash of the full path, so two
    projects with the same folder name do not share a file.
    """
    safe_name = re.sub(r"[^a-zA-Z0-9_-]", "_", project_root.name) or "workspace"
    digest = hashlib.md5(str(project_root).encode("utf-8")).hexdigest()[:6]
    return f"filemarks-{safe_name}-{digest}.json"


def resolve_storage_path(settings: Settings) -> Path:
    if settings.save_in_project:
        return project_storage_path(settings.project_root)
    return settings.global_dir / global_storage_file_name(settings.project_root)


def migrate_legacy_global_storage(global_dir: Path, target: Path, reporter: ErrorReporter) -> bool:
    """Move the old shared ``filemarks.json`` to the per-project file.

    Never overwrites: if target already exists the legacy file is left alone.

    Returns:
        True if the legacy file was moved.
    """
    legacy = global_dir / STORAGE_FILE_NAME
    if legacy == target or not legacy.is_file():
        return False
    if target.exists():
        logger.debug("Not migrating {}: {} already exists", legacy, target)
        return False
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        legacy.rename(target)
    except OSError as e:
        reporter.report_silent(
            FilemarkError.storage_write(e, str(target)), context={"operation": "migrate"}
        )
        return False
    logger.info("Migrated legacy bookmark file {} -> {}", legacy, target)
    return True


def prepare_storage_path(settings: Settings, reporter: ErrorReporter) -> Path:
    """Resolve the document path, migrating the legacy global file when storing globally."""
    path = resolve_storage_path(settings)
    if not settings.save_in_project:
        migrate_legacy_global_storage(settings.global_dir, path, reporter)
    return path
