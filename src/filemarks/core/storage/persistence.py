"""Durable storage of the bookmark tree in a single JSON document."""

import json
import os
import shutil
import time
from pathlib import Path
from typing import Any

from loguru import logger

from filemarks.config import MAX_MARK_NUMBER, MIN_MARK_NUMBER, SAVE_DEBOUNCE_SECONDS, STATE_VERSION
from filemarks.core.timers import PendingTimer
from filemarks.errors import ErrorReporter, FilemarkError, RecoveryAction
from filemarks.models.node import (
    BookmarkNode,
    FilemarkState,
    FolderNode,
    TreeNode,
    new_id,
    now_iso,
)
from filemarks.protocols import Scheduler


class StorageService:
    """Load and save the bookmark document.

    - Saves are debounced: a burst of save() calls inside the window produces one
      write of the last state passed in.
    - A document that fails to parse is backed up next to the original and
      replaced by an empty state.
    - A document that parses but has a bad shape is repaired in place where possible.

    The location is decided by the caller (see ``location.resolve_storage_path``).
    """

    def __init__(
        self,
        path: str | Path,
        *,
        scheduler: Scheduler,
        reporter: ErrorReporter,
        delay: float = SAVE_DEBOUNCE_SECONDS,
    ) -> None:
        self.path = Path(path)
        self.delay = delay
        self._reporter = reporter
        self._timer = PendingTimer(scheduler)
        self._pending: dict[str, Any] | None = None
        # Backup of the document made by the last load(), if it needed one.
        self._backup: Path | None = None

        self._num_writes = 0
        self._num_same = 0

    @property
    def has_pending_write(self) -> bool:
        return self._pending is not None

    def load(self) -> FilemarkState:
        """Read the document. Never raises; failures are reported and yield an empty state."""
        self._backup = None
        try:
            contents = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No bookmark document at {}, starting empty", self.path)
            return FilemarkState()
        except UnicodeDecodeError as e:
            return self._recover_unparsable(e)
        except OSError as e:
            self._reporter.report(FilemarkError.storage_read(e, str(self.path)))
            return FilemarkState()

        try:
            data = json.loads(contents)
        except json.JSONDecodeError as e:
            return self._recover_unparsable(e)

        state, problems = repair_state(data)
        if problems:
            logger.warning(
                "Repaired bookmark document {}: {}", self.path, "; ".join(problems[:10])
            )
            self._backup = self.create_backup()
            self._reporter.report(
                FilemarkError.corrupted_data(str(self.path), problems[0]),
                recovery=RecoveryAction("Discard", self.discard),
            )
        return state

    def save(self, state: FilemarkState) -> None:
        """Schedule a write of state, superseding any write still pending."""
        self._pending = state.to_dict()
        self._timer.arm(self.delay, self._write_pending)

    def flush(self) -> None:
        """Write the pending state now, if there is one."""
        self._timer.cancel()
        self._write_pending()

    def close(self) -> None:
        self.flush()

    def create_backup(self) -> Path | None:
        """Copy the current document to a timestamped sibling file."""
        base = f"{self.path.stem}.backup.{int(time.time() * 1000)}"
        backup = self.path.with_name(base + ".json")
        unique_count = 0
        while backup.exists():
            unique_count += 1
            backup = self.path.with_name(f"{base}-{unique_count}.json")
        try:
            shutil.copyfile(self.path, backup)
        except OSError as e:
            self._reporter.report_silent(
                FilemarkError.storage_write(e, str(backup)), context={"operation": "backup"}
            )
            return None
        logger.info("Backed up bookmark document to {}", backup)
        return backup

    def reset_storage(self) -> None:
        """Delete the document. See discard() for the user-facing action."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            self._reporter.report_silent(
                FilemarkError.storage_write(e, str(self.path)), context={"operation": "reset"}
            )
            return
        logger.info("Removed bookmark document {}", self.path)

    def discard(self) -> None:
        """Delete the document, backing it up first unless load() already did."""
        if self._backup is None and self.path.is_file():
            self._backup = self.create_backup()
        self.reset_storage()

    def _recover_unparsable(self, error: Exception) -> FilemarkState:
        self._backup = self.create_backup()
        self._reporter.report(
            FilemarkError.json_parse(error, str(self.path)),
            recovery=RecoveryAction("Discard", self.discard),
        )
        return FilemarkState()

    def _write_pending(self) -> None:
        payload = self._pending
        self._pending = None
        if payload is None:
            return
        contents = json.dumps(payload, indent=2) + "\n"
        try:
            try:
                if self.path.read_text(encoding="utf-8") == contents:
                    self._num_same += 1
                    return
            except (FileNotFoundError, UnicodeDecodeError):
                pass
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(contents, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            self._reporter.report(FilemarkError.storage_write(e, str(self.path)))
            return
        self._num_writes += 1
        logger.debug("Wrote bookmark document {}", self.path)


def repair_state(data: Any) -> tuple[FilemarkState, list[str]]:
    """Interpret a parsed document, coercing or dropping what does not fit.

    Returns:
        The usable state and a list of human-readable problems (empty if the
        document was well formed).
    """
    problems: list[str] = []
    if not isinstance(data, dict):
        return FilemarkState(), [f"document is a {type(data).__name__}, not an object"]

    version = data.get("version")
    if not isinstance(version, str) or not version:
        problems.append("missing version")
        version = STATE_VERSION

    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        problems.append("items is not a list")
        raw_items = []

    repairer = _NodeRepairer(problems)
    return FilemarkState(version=version, items=repairer.repair_all(raw_items)), problems


class _NodeRepairer:
    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        self._ids: set[str] = set()
        self._paths: set[str] = set()

    def repair_all(self, raw_nodes: list[Any]) -> list[TreeNode]:
        nodes = (self._repair(raw) for raw in raw_nodes)
        return [n for n in nodes if n is not None]

    def _repair(self, raw: Any) -> TreeNode | None:
        if not isinstance(raw, dict):
            self.problems.append(f"dropped non-object node {raw!r:.40}")
            return None
        node_type = raw.get("type")
        if node_type == "folder":
            return self._repair_folder(raw)
        if node_type == "bookmark":
            return self._repair_bookmark(raw)
        self.problems.append(f"dropped node with unknown type {node_type!r}")
        return None

    def _repair_folder(self, raw: dict[str, Any]) -> FolderNode:
        name = raw.get("name")
        if not isinstance(name, str):
            self.problems.append("folder without name")
            name = "Untitled"
        children = raw.get("children")
        if not isinstance(children, list):
            self.problems.append(f"folder {name!r} has no children list")
            children = []
        expanded = raw.get("expanded", True)
        created_at, updated_at = self._timestamps(raw)
        return FolderNode(
            id=self._unique_id(raw.get("id")),
            name=name,
            children=self.repair_all(children),
            expanded=expanded if isinstance(expanded, bool) else True,
            created_at=created_at,
            updated_at=updated_at,
        )

    def _repair_bookmark(self, raw: dict[str, Any]) -> BookmarkNode | None:
        file_path = raw.get("filePath")
        if not isinstance(file_path, str) or not file_path:
            self.problems.append("dropped bookmark without filePath")
            return None
        if file_path in self._paths:
            self.problems.append(f"dropped duplicate bookmark for {file_path!r}")
            return None

        raw_numbers = raw.get("numbers")
        numbers: dict[int, int] = {}
        used_lines: set[int] = set()
        for key, line in (raw_numbers.items() if isinstance(raw_numbers, dict) else ()):
            number = _as_int(key)
            line_int = line if isinstance(line, int) and not isinstance(line, bool) else None
            if (
                number is None
                or not MIN_MARK_NUMBER <= number <= MAX_MARK_NUMBER
                or line_int is None
                or line_int < 0
                or line_int in used_lines
            ):
                self.problems.append(f"dropped mark {key!r}->{line!r} in {file_path!r}")
                continue
            numbers[number] = line_int
            used_lines.add(line_int)
        if not numbers:
            self.problems.append(f"dropped bookmark {file_path!r} with no marks")
            return None

        label = raw.get("label")
        created_at, updated_at = self._timestamps(raw)
        self._paths.add(file_path)
        return BookmarkNode(
            id=self._unique_id(raw.get("id")),
            file_path=file_path,
            numbers=numbers,
            label=label if isinstance(label, str) and label else None,
            created_at=created_at,
            updated_at=updated_at,
        )

    def _unique_id(self, raw_id: Any) -> str:
        if not isinstance(raw_id, str) or not raw_id or raw_id in self._ids:
            self.problems.append(f"replaced missing or duplicate id {raw_id!r}")
            raw_id = new_id()
        self._ids.add(raw_id)
        return raw_id

    def _timestamps(self, raw: dict[str, Any]) -> tuple[str, str]:
        created_at = raw.get("createdAt")
        updated_at = raw.get("updatedAt")
        if not isinstance(created_at, str) or not isinstance(updated_at, str):
            self.problems.append(f"missing timestamps on node {raw.get('id')!r}")
            stamp = now_iso()
            created_at = created_at if isinstance(created_at, str) else stamp
            updated_at = updated_at if isinstance(updated_at, str) else created_at
        return created_at, updated_at


def _as_int(key: Any) -> int | None:
    if isinstance(key, int) and not isinstance(key, bool):
        return key
    if isinstance(key, str) and key.strip().lstrip("-").isdigit():
        return int(key)
    return None
