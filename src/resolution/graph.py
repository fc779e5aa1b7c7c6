"""Dependency graph produced by the resolver.

Nodes live in a flat arena and are addressed by integer id; edges are id
pairs. Cycles between packages are therefore plain data, not reference
cycles. A node's ``scope`` is ``None`` when it is hoisted to the top level,
or the id of the requester it is isolated under.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from common.errors import ResolutionError
from registry.base import VersionRecord
from versioning.models import Requirement

RequirementKey = Tuple[str, str]


@dataclass(frozen=True)
class ResolvedNode:
    """One concrete package version placed in the graph."""

    node_id: int
    name: str
    version: str
    tarball_url: str
    integrity: str
    scope: Optional[int] = None
    dependencies: Tuple[Tuple[str, str], ...] = ()

    @property
    def hoisted(self) -> bool:
        return self.scope is None

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class ResolutionFailure:
    """A requirement that could not be resolved, with the reason."""

    requirement: Requirement
    error: ResolutionError

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def reason(self) -> str:
        return self.error.message


@dataclass
class DependencyGraph:
    """Arena of resolved nodes plus the "requires" edge relation."""

    nodes: List[ResolvedNode] = field(default_factory=list)
    edges: Set[Tuple[int, int]] = field(default_factory=set)
    roots: Dict[RequirementKey, int] = field(default_factory=dict)
    selections: Dict[RequirementKey, int] = field(default_factory=dict)
    failures: List[ResolutionFailure] = field(default_factory=list)

    def add_node(self, record: VersionRecord, scope: Optional[int]) -> ResolvedNode:
        """Append a node built from ``record``; the id is its arena index."""
        if scope is None and self.hoisted(record.name) is not None:
            raise ValueError(f"{record.name} already has a hoisted node")
        node = ResolvedNode(
            node_id=len(self.nodes),
            name=record.name,
            version=record.version,
            tarball_url=record.tarball_url,
            integrity=record.integrity,
            scope=scope,
            dependencies=record.dependencies,
        )
        self.nodes.append(node)
        return node

    def add_edge(self, from_id: Optional[int], to_id: int) -> None:
        """Record that ``from_id`` requires ``to_id``; root edges are not stored."""
        if from_id is not None:
            self.edges.add((from_id, to_id))

    def node(self, node_id: int) -> ResolvedNode:
        return self.nodes[node_id]

    def __iter__(self) -> Iterator[ResolvedNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def hoisted(self, name: str) -> Optional[ResolvedNode]:
        """Return the hoisted node for ``name``, if any."""
        for node in self.nodes:
            if node.scope is None and node.name == name:
                return node
        return None

    def children(self, node_id: int) -> List[ResolvedNode]:
        """Nodes required by ``node_id``, in id order."""
        return [self.nodes[t] for f, t in sorted(self.edges) if f == node_id]

    def requirers(self, node_id: int) -> List[ResolvedNode]:
        """Nodes that require ``node_id``, in id order."""
        return [self.nodes[f] for f, t in sorted(self.edges) if t == node_id]

    def depth(self, node_id: int) -> int:
        """Number of isolation levels above the node; hoisted nodes are 0."""
        depth = 0
        scope = self.nodes[node_id].scope
        while scope is not None:
            depth += 1
            scope = self.nodes[scope].scope
        return depth

    def reachable_from(self, start: int) -> Set[int]:
        """Ids reachable from ``start`` along "requires" edges, inclusive."""
        adjacency: Dict[int, List[int]] = {}
        for f, t in self.edges:
            adjacency.setdefault(f, []).append(t)
        seen = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in adjacency.get(current, ()):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return seen

    def blocked_nodes(self) -> Dict[int, ResolutionFailure]:
        """Nodes that cannot be installed because a dependency failed.

        A failure blocks its requester and, transitively, everything that
        requires the requester. The first failure reaching a node (in
        failure order) is the one reported for it.
        """
        reverse: Dict[int, List[int]] = {}
        for f, t in self.edges:
            reverse.setdefault(t, []).append(f)
        blocked: Dict[int, ResolutionFailure] = {}
        for failure in self.failures:
            start = failure.requirement.requester_id
            if start is None or start in blocked:
                continue
            queue = deque([start])
            blocked[start] = failure
            while queue:
                current = queue.popleft()
                for parent in sorted(reverse.get(current, ())):
                    if parent not in blocked:
                        blocked[parent] = failure
                        queue.append(parent)
        return blocked

    def to_dict(self) -> dict:
        """Plain, order-stable representation (used for comparisons and reports)."""
        return {
            "nodes": [
                {
                    "id": n.node_id,
                    "name": n.name,
                    "version": n.version,
                    "resolved": n.tarball_url,
                    "integrity": n.integrity,
                    "scope": n.scope,
                    "dependencies": dict(n.dependencies),
                }
                for n in self.nodes
            ],
            "edges": sorted([list(e) for e in self.edges]),
            "roots": {f"{k[0]}@{k[1]}": v for k, v in sorted(self.roots.items())},
            "selections": {f"{k[0]}@{k[1]}": v for k, v in sorted(self.selections.items())},
            "failures": [
                {"requirement": str(f.requirement), "kind": f.kind, "reason": f.reason}
                for f in self.failures
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)
