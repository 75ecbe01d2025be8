"""Numbered line bookmarks per file, organized in a tree of folders."""

from filemarks.errors import ErrorReporter, FilemarkError
from filemarks.models.node import BookmarkNode, FilemarkState, FolderNode
from filemarks.protocols import Scheduler
from filemarks.store import BookmarkStore, create_store

__all__ = [
    "BookmarkNode",
    "BookmarkStore",
    "ErrorReporter",
    "FilemarkError",
    "FilemarkState",
    "FolderNode",
    "Scheduler",
    "create_store",
]
