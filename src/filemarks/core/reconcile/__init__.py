"""Keep bookmarks in step with file creations, deletions and renames."""

from filemarks.core.reconcile.reconciler import PendingDeletion, Reconciler

__all__ = ["PendingDeletion", "Reconciler"]
