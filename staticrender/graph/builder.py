"""Dependency graph construction for entry points and their transitive imports."""

from __future__ import annotations

import fnmatch
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..config import RenderConfig
from ..discovery import is_vendored, is_within, normalise_extensions
from ..logging import get_logger
from ..models import EntryPoint
from .imports import ImportResolver, parse_imports

logger = get_logger("graph")


class GraphBuildError(RuntimeError):
    """Raised when an entry point's dependency closure cannot be fully computed."""

    def __init__(
        self,
        entry_point: str,
        message: str,
        *,
        file_path: Path | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.entry_point = entry_point
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


def transpose(forward: Mapping[Path, FrozenSet[Path]]) -> Dict[Path, FrozenSet[Path]]:
    """Invert an entry -> dependencies mapping into dependency -> entries."""
    reverse: Dict[Path, Set[Path]] = {}
    for entry, dependencies in forward.items():
        for dependency in dependencies:
            reverse.setdefault(dependency, set()).add(entry)
    return {dependency: frozenset(entries) for dependency, entries in reverse.items()}


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable snapshot of entry-point dependencies.

    ``forward`` maps each entry point to the files it transitively imports (never
    itself); ``reverse`` is its exact transpose. Snapshots are replaced wholesale
    on rebuild and never mutated.
    """

    forward: Mapping[Path, FrozenSet[Path]] = field(default_factory=dict)
    reverse: Mapping[Path, FrozenSet[Path]] = field(default_factory=dict)
    failures: Mapping[Path, GraphBuildError] = field(default_factory=dict)

    @classmethod
    def from_forward(
        cls,
        forward: Mapping[Path, Iterable[Path]],
        failures: Mapping[Path, GraphBuildError] | None = None,
    ) -> "DependencyGraph":
        frozen = {entry: frozenset(deps) for entry, deps in forward.items()}
        return cls(forward=frozen, reverse=transpose(frozen), failures=dict(failures or {}))

    @property
    def entry_points(self) -> FrozenSet[Path]:
        return frozenset(self.forward)

    def dependencies_of(self, entry_point: Path) -> FrozenSet[Path]:
        return self.forward.get(entry_point, frozenset())

    def dependents_of(self, path: Path) -> FrozenSet[Path]:
        return self.reverse.get(path, frozenset())

    def nodes(self) -> FrozenSet[Path]:
        """Every file known to the graph, entry points included."""
        return frozenset(self.forward) | frozenset(self.reverse)

    def affected_entry_points(self, path: Path) -> FrozenSet[Path]:
        """Entry points whose dependency closure contains ``path``."""
        return self.dependents_of(path)

    def watch_directories(self) -> FrozenSet[Path]:
        return frozenset(node.parent for node in self.nodes())


class DependencyGraphBuilder:
    """Computes the transitive local-import closure of each entry point.

    A file that fails to parse is recorded as a :class:`GraphBuildError` for the
    entry point that reached it; the partial closure (including the broken file)
    is kept so edits to it still trigger a re-render.
    """

    def __init__(
        self,
        search_roots: Sequence[Path],
        extensions: Sequence[str] = ("py",),
    ) -> None:
        self.resolver = ImportResolver(search_roots)
        self.suffixes = normalise_extensions(extensions)

    @classmethod
    def from_config(cls, config: RenderConfig) -> "DependencyGraphBuilder":
        return cls(config.search_roots, config.file_extensions)

    def build(self, entry_points: Iterable[EntryPoint]) -> DependencyGraph:
        forward: Dict[Path, Set[Path]] = {}
        failures: Dict[Path, GraphBuildError] = {}
        for entry in entry_points:
            entry_path = entry.absolute_path.resolve()
            dependencies, error = self._closure(entry.path, entry_path)
            forward[entry_path] = dependencies
            if error is not None:
                failures[entry_path] = error
                logger.warning("Dependency scan incomplete for %s: %s", entry.path, error)
        graph = DependencyGraph.from_forward(forward, failures)
        logger.debug(
            "Dependency graph built: %d entry points, %d dependencies",
            len(graph.forward),
            len(graph.reverse),
        )
        return graph

    def _closure(
        self, entry_name: str, entry_path: Path
    ) -> Tuple[Set[Path], Optional[GraphBuildError]]:
        visited: Set[Path] = {entry_path}
        pending = deque([entry_path])
        error: Optional[GraphBuildError] = None

        while pending:
            current = pending.popleft()
            try:
                references = parse_imports(current)
            except (OSError, SyntaxError, ValueError) as exc:
                if error is None:
                    error = GraphBuildError(
                        entry_name,
                        f"Failed to parse {current}: {exc}",
                        file_path=current,
                        cause=exc,
                    )
                continue

            for reference in references:
                for dependency in self.resolver.resolve(current, reference):
                    if dependency in visited or not self._is_local(dependency):
                        continue
                    visited.add(dependency)
                    pending.append(dependency)

        visited.discard(entry_path)
        return visited, error

    def _is_local(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes and not is_vendored(path)


@dataclass(frozen=True)
class WatchTargets:
    """Directories the watcher should observe.

    ``recursive`` directories cover their whole subtree; ``flat`` ones only their
    direct children.
    """

    recursive: FrozenSet[Path] = frozenset()
    flat: FrozenSet[Path] = frozenset()

    def all(self) -> List[Tuple[Path, bool]]:
        targets = [(path, True) for path in sorted(self.recursive)]
        targets.extend((path, False) for path in sorted(self.flat))
        return targets


def derive_watch_targets(config: RenderConfig, graph: DependencyGraph) -> WatchTargets:
    """Return the directories covering entry points, templates, graph nodes and patterns."""
    recursive: Set[Path] = {config.entry_points_dir, config.template_dir}
    flat: Set[Path] = {node.parent for node in graph.nodes()}

    for pattern in config.watch.patterns:
        for match in _glob(config.root, pattern):
            if match.is_dir():
                recursive.add(match)
            else:
                flat.add(match.parent)

    recursive = {path for path in recursive if path.is_dir()}
    flat = {
        path
        for path in flat
        if path.is_dir() and not any(is_within(path, parent) for parent in recursive)
    }
    return WatchTargets(recursive=frozenset(recursive), flat=frozenset(flat))


def matches_watch_pattern(config: RenderConfig, path: Path) -> bool:
    """Return True when ``path`` matches one of the extra watch patterns."""
    if not is_within(path, config.root):
        return False
    relative = path.relative_to(config.root).as_posix()
    return any(fnmatch.fnmatch(relative, pattern) for pattern in config.watch.patterns)


def _glob(root: Path, pattern: str) -> List[Path]:
    candidate = Path(pattern).expanduser()
    if candidate.is_absolute():
        return [candidate] if candidate.exists() else []
    return sorted(root.glob(pattern))


__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "GraphBuildError",
    "WatchTargets",
    "derive_watch_targets",
    "matches_watch_pattern",
    "transpose",
]
