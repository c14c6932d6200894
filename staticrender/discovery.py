"""Entry-point discovery under the configured entry-point root."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from .config import RenderConfig
from .models import EntryPoint

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}

# Any path containing one of these segments belongs to installed or vendored
# code and is treated as opaque by discovery and by the dependency graph.
VENDORED_MARKERS = frozenset(
    {
        "site-packages",
        "dist-packages",
        "node_modules",
        ".venv",
        "venv",
        "__pypackages__",
    }
)


def is_vendored(path: Path) -> bool:
    """Return True when the path lies inside a vendored-dependency directory."""
    return any(part in VENDORED_MARKERS for part in path.parts)


def normalise_extensions(extensions: Iterable[str]) -> tuple[str, ...]:
    return tuple(f".{ext.strip().lstrip('.').lower()}" for ext in extensions if ext.strip())


def is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class EntryPointScanner:
    """Enumerates entry-point files under a root, filtered by extension."""

    def __init__(self, extensions: Sequence[str] = ("py",)) -> None:
        self.suffixes = normalise_extensions(extensions)

    @classmethod
    def from_config(cls, config: RenderConfig) -> "EntryPointScanner":
        return cls(config.file_extensions)

    def is_entry_point(self, path: Path, root: Path) -> bool:
        """Return True when ``path`` would be discovered as an entry point of ``root``."""
        if not is_within(path, root) or path == root:
            return False
        if path.suffix.lower() not in self.suffixes:
            return False
        # Private modules (``__init__.py``, ``_helpers.py``) are support code.
        if path.name.startswith("_"):
            return False
        relative_parts = path.relative_to(root).parts[:-1]
        return not any(part in _EXCLUDED_DIRS or part.startswith(".") for part in relative_parts)

    def scan(self, root: Path) -> List[EntryPoint]:
        """Return the entry points under ``root`` sorted by relative path."""
        root_path = root.expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Entry-point directory not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Entry-point path is not a directory: {root}")

        entry_points = [
            self._entry_point(root_path, path)
            for path in _iter_files(root_path)
            if self.is_entry_point(path, root_path)
        ]
        return sorted(entry_points, key=lambda entry: entry.path)

    def resolve(self, root: Path, candidate: str, *, cwd: Path | None = None) -> EntryPoint:
        """Resolve an explicit file argument to an entry point.

        The argument may be relative to the entry-point root, or a cwd-relative or
        absolute path that lies inside it.
        """
        root_path = root.expanduser().resolve()
        raw = Path(candidate).expanduser()
        options: List[Path] = []
        if raw.is_absolute():
            options.append(raw.resolve())
        else:
            options.append((root_path / raw).resolve())
            options.append(((cwd or Path.cwd()) / raw).resolve())

        for option in options:
            if is_within(option, root_path) and option.suffix.lower() in self.suffixes:
                if option.is_file():
                    return self._entry_point(root_path, option)

        raise FileNotFoundError(
            f"Entry point not found: {candidate} (looked under {root_path})"
        )

    def find_by_stem(self, root: Path, stem: str) -> List[EntryPoint]:
        """Return every entry point whose file name (without extension) equals ``stem``."""
        root_path = root.expanduser().resolve()
        if not root_path.is_dir():
            return []
        return [entry for entry in self.scan(root_path) if entry.name == stem]

    @staticmethod
    def _entry_point(root: Path, path: Path) -> EntryPoint:
        return EntryPoint(
            path=path.relative_to(root).as_posix(),
            absolute_path=path,
            extension=path.suffix.lower(),
        )


def discover_entry_points(config: RenderConfig) -> List[EntryPoint]:
    """Enumerate the entry points configured for this session."""
    return EntryPointScanner.from_config(config).scan(config.entry_points_dir)


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in _EXCLUDED_DIRS and not name.startswith(".")
        )
        for filename in sorted(filenames):
            yield current_dir / filename


__all__ = [
    "EntryPointScanner",
    "VENDORED_MARKERS",
    "discover_entry_points",
    "is_vendored",
    "is_within",
    "normalise_extensions",
]
