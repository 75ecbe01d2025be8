"""Protocols for dependency injection in the bookmark engine."""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from filemarks.models.node import BookmarkNode


@runtime_checkable
class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        """Cancel the callback. Cancelling twice, or after it fired, is a no-op."""
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Source of deferred callbacks for debouncing and grace periods."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay seconds."""
        ...


@runtime_checkable
class ReconcileTarget(Protocol):
    """The subset of the bookmark store that reconciliation mutates."""

    def bookmarks_under(self, path: str) -> list[BookmarkNode]:
        """Bookmarks whose file is path itself or lies below directory path."""
        ...

    def commit_file_deletion(self, file_path: str) -> bool:
        """Remove the bookmark for file_path. Returns True if one was removed."""
        ...

    def commit_file_rename(self, old_path: str, new_path: str) -> bool:
        """Point bookmarks at or under old_path to new_path. Returns True if any moved."""
        ...
