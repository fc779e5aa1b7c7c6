"""Diff a freshly resolved graph against the persisted lock snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Tuple

from resolution.graph import DependencyGraph

from .snapshot import LockEntry, LockKey, LockSnapshot, format_key

logger = logging.getLogger(__name__)


@dataclass
class ChangeSet:
    """What reconciliation decided for each (name, range) in the graph."""

    added: List[Tuple[LockKey, LockEntry]] = field(default_factory=list)
    updated: List[Tuple[LockKey, LockEntry, LockEntry]] = field(default_factory=list)
    unchanged: List[LockKey] = field(default_factory=list)
    deferred: List[LockKey] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)

    def summary(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.updated)} updated, "
            f"{len(self.unchanged)} unchanged, {len(self.deferred)} deferred"
        )

    def to_dict(self) -> dict:
        return {
            "added": {format_key(*k): e.version for k, e in self.added},
            "updated": {
                format_key(*k): {"from": old.version, "to": new.version}
                for k, old, new in self.updated
            },
            "unchanged": [format_key(*k) for k in self.unchanged],
            "deferred": [format_key(*k) for k in self.deferred],
        }


def reconcile(
    old: LockSnapshot,
    graph: DependencyGraph,
    eligible: Optional[Collection[int]] = None,
) -> Tuple[LockSnapshot, ChangeSet]:
    """Fold the graph's selections into ``old``.

    Args:
        old: Snapshot loaded before resolution.
        graph: Freshly resolved graph.
        eligible: Node ids whose install succeeded or was verified present.
            Selections pointing at any other node are deferred and their old
            entry, if any, is kept. ``None`` treats every node as eligible.

    Returns:
        (updated snapshot, change set). Entries of ``old`` that the graph does
        not mention are carried over untouched.
    """
    changes = ChangeSet()
    updates: Dict[LockKey, LockEntry] = {}

    for key in sorted(graph.selections):
        node = graph.node(graph.selections[key])
        if eligible is not None and node.node_id not in eligible:
            changes.deferred.append(key)
            continue
        new_entry = LockEntry(node.version, node.tarball_url, node.integrity, node.dependencies)
        previous = old.get(*key)
        if previous is None:
            changes.added.append((key, new_entry))
            updates[key] = new_entry
        elif previous.version == new_entry.version and previous.integrity == new_entry.integrity:
            changes.unchanged.append(key)
        else:
            changes.updated.append((key, previous, new_entry))
            updates[key] = new_entry

    logger.info("Lock reconciliation: %s", changes.summary())
    return old.updated(updates), changes
