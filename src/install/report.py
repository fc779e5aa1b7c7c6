"""Aggregate outcome of an install pass."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional

from constants import ExitCodes, InstallStatus
from resolution.graph import ResolutionFailure


@dataclass(frozen=True)
class NodeOutcome:
    """What happened to one resolved node."""

    node_id: int
    name: str
    version: str
    path: str
    status: InstallStatus
    reason: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        out = {
            "name": self.name,
            "version": self.version,
            "path": self.path,
            "status": self.status.value,
        }
        if self.error_kind:
            out["error"] = self.error_kind
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass
class InstallReport:
    """Per-node outcomes plus the requirements that never resolved."""

    outcomes: List[NodeOutcome] = field(default_factory=list)
    resolution_failures: List[ResolutionFailure] = field(default_factory=list)
    cancelled: bool = False

    def add(self, outcome: NodeOutcome) -> None:
        self.outcomes.append(outcome)

    def sort(self) -> None:
        self.outcomes.sort(key=lambda o: (o.path, o.node_id))

    def _with(self, status: InstallStatus) -> List[NodeOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def installed(self) -> List[NodeOutcome]:
        return self._with(InstallStatus.INSTALLED)

    @property
    def skipped(self) -> List[NodeOutcome]:
        return self._with(InstallStatus.SKIPPED)

    @property
    def failed(self) -> List[NodeOutcome]:
        return self._with(InstallStatus.FAILED)

    @property
    def interrupted(self) -> List[NodeOutcome]:
        return self._with(InstallStatus.CANCELLED)

    def succeeded_ids(self) -> set:
        """Node ids that were installed or verified already present."""
        return {o.node_id for o in self.outcomes
                if o.status in (InstallStatus.INSTALLED, InstallStatus.SKIPPED)}

    @property
    def ok(self) -> bool:
        return not (self.failed or self.resolution_failures or self.cancelled)

    def exit_code(self) -> int:
        if self.cancelled:
            return ExitCodes.CANCELLED.value
        if not self.ok:
            return ExitCodes.INSTALL_FAILED.value
        return ExitCodes.SUCCESS.value

    def summary(self) -> str:
        return (
            f"{len(self.installed)} installed, {len(self.skipped)} already present, "
            f"{len(self.failed)} failed, {len(self.resolution_failures)} unresolved"
            + (", cancelled" if self.cancelled else "")
        )

    def to_dict(self) -> dict:
        return {
            "summary": {
                "installed": len(self.installed),
                "skipped": len(self.skipped),
                "failed": len(self.failed),
                "unresolved": len(self.resolution_failures),
                "cancelled": self.cancelled,
            },
            "packages": [o.to_dict() for o in self.outcomes],
            "unresolved": [
                {"requirement": str(f.requirement), "error": f.kind, "reason": f.reason}
                for f in self.resolution_failures
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
