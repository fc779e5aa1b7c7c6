"""Fetch & install pipeline."""

from .pipeline import InstallPipeline
from .placement import compute_placements
from .report import InstallReport, NodeOutcome

__all__ = ["InstallPipeline", "InstallReport", "NodeOutcome", "compute_placements"]
