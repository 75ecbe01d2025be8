"""File system reconciliation with a grace period for transient deletes.

Atomic saves and version-control checkouts often delete a file and create it
again a moment later. A delete therefore only marks the file's bookmark as
pending; the bookmark is removed when the grace period passes without the
file coming back.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from filemarks.config import DELETE_GRACE_PERIOD_SECONDS, is_ignored_path
from filemarks.core.timers import PendingTimer
from filemarks.errors import ErrorReporter
from filemarks.protocols import ReconcileTarget, Scheduler


@dataclass
class PendingDeletion:
    """A deletion waiting out its grace period."""

    file_path: str
    requested_at: float
    timer: PendingTimer


def _is_under(file_path: str, path: str) -> bool:
    return file_path == path or file_path.startswith(path.rstrip("/") + "/")


class Reconciler:
    """Apply host file events (paths relative to the project root) to the bookmark tree."""

    def __init__(
        self,
        target: ReconcileTarget,
        *,
        scheduler: Scheduler,
        reporter: ErrorReporter,
        grace_period: float = DELETE_GRACE_PERIOD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._target = target
        self._scheduler = scheduler
        self._reporter = reporter
        self.grace_period = grace_period
        self._clock = clock
        self._pending: dict[str, PendingDeletion] = {}

    @property
    def pending_paths(self) -> tuple[str, ...]:
        return tuple(sorted(self._pending))

    def on_delete(self, path: str) -> int:
        """Start grace periods for the bookmarks at or under path.

        Returns:
            Number of bookmarks now pending deletion.
        """
        if is_ignored_path(path):
            return 0
        bookmarks = self._target.bookmarks_under(path)
        for bookmark in bookmarks:
            self._schedule(bookmark.file_path)
        return len(bookmarks)

    def on_create(self, path: str) -> int:
        """Cancel pending deletions at or under path; the bookmarks survive unchanged."""
        if is_ignored_path(path):
            return 0
        return self._cancel_under(path, reason="recreated")

    def on_rename(self, old_path: str, new_path: str) -> bool:
        """Move bookmarks from old_path to new_path, keeping ids and marks."""
        if is_ignored_path(old_path) and is_ignored_path(new_path):
            return False
        self._cancel_under(old_path, reason="renamed")
        # A rename onto a path is also a (re)creation of that path.
        self._cancel_under(new_path, reason="replaced by rename")
        changed = self._target.commit_file_rename(old_path, new_path)
        if changed:
            logger.info("File renamed: {} -> {}", old_path, new_path)
        return changed

    def dispose(self) -> None:
        """Cancel every pending deletion without committing it."""
        for pending in self._pending.values():
            pending.timer.cancel()
        self._pending.clear()

    def _schedule(self, file_path: str) -> None:
        pending = self._pending.get(file_path)
        if pending is None:
            pending = PendingDeletion(file_path, self._clock(), PendingTimer(self._scheduler))
            self._pending[file_path] = pending
        else:
            pending.requested_at = self._clock()
        # Timer callbacks have no caller to raise to.
        commit = self._reporter.wrap(self._commit)
        pending.timer.arm(self.grace_period, lambda: commit(file_path))
        logger.debug("Deletion of {} pending for {}s", file_path, self.grace_period)

    def _cancel_under(self, path: str, *, reason: str) -> int:
        matched = [p for p in self._pending if _is_under(p, path)]
        for file_path in matched:
            pending = self._pending.pop(file_path)
            pending.timer.cancel()
            elapsed = self._clock() - pending.requested_at
            logger.debug("Kept bookmark for {} ({} after {:.3f}s)", file_path, reason, elapsed)
        return len(matched)

    def _commit(self, file_path: str) -> None:
        if self._pending.pop(file_path, None) is None:
            return
        if self._target.commit_file_deletion(file_path):
            logger.info("File deleted: {}, removed its bookmark", file_path)
