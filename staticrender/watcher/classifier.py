"""Maps filesystem change events to the entry points they affect."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable

from ..config import RenderConfig
from ..discovery import EntryPointScanner, is_within
from ..graph import DependencyGraph
from ..logging import get_logger
from ..models import ChangeEvent, ChangeKind

logger = get_logger("watcher")


class ChangeCategory(str, enum.Enum):
    ENTRY_POINT = "entry-point"
    TEMPLATE = "template"
    DEPENDENCY = "dependency"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one change event.

    ``affected`` holds entry-point paths relative to the entry-point root.
    ``rebuild`` is set for changes that alter the entry-point set itself.
    """

    category: ChangeCategory
    affected: FrozenSet[str] = frozenset()
    rebuild: bool = False


class ChangeClassifier:
    """Classifies change events against a single dependency-graph snapshot."""

    def __init__(
        self,
        config: RenderConfig,
        graph: DependencyGraph,
        *,
        scanner: EntryPointScanner | None = None,
    ) -> None:
        self.config = config
        self.graph = graph
        self.scanner = scanner or EntryPointScanner.from_config(config)

    def classify(self, event: ChangeEvent) -> Classification:
        path = event.path.expanduser().resolve()
        entry_root = self.config.entry_points_dir
        template_root = self.config.template_dir

        if is_within(path, entry_root) and path.suffix.lower() in self.scanner.suffixes:
            if self.scanner.is_entry_point(path, entry_root):
                relative = path.relative_to(entry_root).as_posix()
                importers = self._dependent_entries(path)
                if event.kind is ChangeKind.REMOVED:
                    logger.info("Entry point removed: %s", relative)
                    return Classification(ChangeCategory.ENTRY_POINT, importers, rebuild=True)
                return Classification(
                    ChangeCategory.ENTRY_POINT, importers | {relative}, rebuild=True
                )

        if is_within(path, template_root):
            matches = self.scanner.find_by_stem(entry_root, path.stem)
            if not matches:
                logger.debug("No entry point matches template %s", path.name)
            return Classification(
                ChangeCategory.TEMPLATE, frozenset(entry.path for entry in matches)
            )

        if path.suffix.lower() not in self.scanner.suffixes:
            return Classification(ChangeCategory.IGNORED)

        affected = self._dependent_entries(path)
        if not affected:
            logger.debug("%s is not in dependency graph", path)
        return Classification(ChangeCategory.DEPENDENCY, affected)

    def _dependent_entries(self, path: Path) -> FrozenSet[str]:
        """Entry points (relative to the entry root) whose import closure contains ``path``."""
        entry_root = self.config.entry_points_dir
        return frozenset(
            entry.relative_to(entry_root).as_posix()
            for entry in self.graph.affected_entry_points(path)
            if is_within(entry, entry_root)
        )

    def affected_by(self, events: Iterable[ChangeEvent]) -> FrozenSet[str]:
        """Union the affected entry points of a coalesced batch."""
        affected: set[str] = set()
        for event in events:
            affected.update(self.classify(event).affected)
        return frozenset(affected)


__all__ = ["ChangeCategory", "ChangeClassifier", "Classification"]
