"""Data models for requirements and version specs."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ResolutionMode(Enum):
    """Resolution strategy derived from the range expression."""
    EXACT = "exact"
    RANGE = "range"
    TAG = "tag"


@dataclass(frozen=True)
class VersionSpec:
    """Normalized representation of a range expression and derived behavior flags."""
    raw: str
    mode: ResolutionMode
    include_prerelease: bool


@dataclass(frozen=True)
class Requirement:
    """A (name, range) constraint declared by the manifest or by a resolved package."""
    name: str
    range_expr: str
    requester_id: Optional[int] = None  # None for manifest (root) requirements
    dev: bool = False

    @property
    def key(self):
        """Stable (name, range) key used by the lock snapshot."""
        return (self.name, self.range_expr)

    def __str__(self) -> str:
        return f"{self.name}@{self.range_expr}"
