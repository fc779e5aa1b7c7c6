"""Lock snapshot persistence and reconciliation."""

from .reconcile import ChangeSet, reconcile
from .snapshot import LockEntry, LockSnapshot

__all__ = ["ChangeSet", "LockEntry", "LockSnapshot", "reconcile"]
