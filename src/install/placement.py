"""Where each resolved node lives on disk.

Placement is derived from the graph's scope structure at install time and
is never stored on the nodes. Hoisted nodes go to ``<root>/<name>``;
isolated nodes go to ``<requester dir>/node_modules/<name>``. Distinct nodes
always get distinct directories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Union

from constants import Constants
from resolution.graph import DependencyGraph


def package_dir(parent: Path, name: str) -> Path:
    """Join a (possibly scoped) package name under ``parent``."""
    return parent.joinpath(*name.split("/"))


def compute_placements(graph: DependencyGraph, install_root: Union[str, Path]) -> Dict[int, Path]:
    """Map every node id to its target directory."""
    root = Path(install_root)
    placements: Dict[int, Path] = {}

    def place(node_id: int) -> Path:
        if node_id in placements:
            return placements[node_id]
        node = graph.node(node_id)
        if node.scope is None:
            target = package_dir(root, node.name)
        else:
            target = package_dir(place(node.scope) / Constants.NESTED_MODULES_DIR, node.name)
        placements[node_id] = target
        return target

    for node in graph:
        place(node.node_id)
    return placements
