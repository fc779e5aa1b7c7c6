"""Dependency resolution: requirement sets to dependency graphs."""

from .graph import DependencyGraph, ResolutionFailure, ResolvedNode
from .resolver import Resolver

__all__ = ["DependencyGraph", "ResolutionFailure", "ResolvedNode", "Resolver"]
