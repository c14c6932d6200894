"""Dependency graph construction and invalidation."""

from __future__ import annotations

from .builder import (
    DependencyGraph,
    DependencyGraphBuilder,
    GraphBuildError,
    WatchTargets,
    derive_watch_targets,
    matches_watch_pattern,
    transpose,
)
from .imports import ImportReference, ImportResolver, parse_imports

__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "GraphBuildError",
    "ImportReference",
    "ImportResolver",
    "WatchTargets",
    "derive_watch_targets",
    "matches_watch_pattern",
    "parse_imports",
    "transpose",
]
