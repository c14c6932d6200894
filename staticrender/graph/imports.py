"""Static import extraction and resolution for entry-point modules."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ImportReference:
    """An ``import``/``from ... import`` statement found in a module."""

    module: str
    level: int = 0
    names: Tuple[str, ...] = ()
    lineno: int = 0


def parse_imports(path: Path) -> List[ImportReference]:
    """Return every import statement in ``path``, including nested ones.

    Raises ``OSError`` when the file cannot be read and ``SyntaxError`` (or
    ``ValueError`` for null bytes) when it cannot be parsed.
    """
    source = path.read_text(encoding="utf-8")
    tree = ast.parse(source, filename=str(path))

    references: List[ImportReference] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                references.append(ImportReference(module=alias.name, lineno=node.lineno))
        elif isinstance(node, ast.ImportFrom):
            names = tuple(alias.name for alias in node.names if alias.name != "*")
            references.append(
                ImportReference(
                    module=node.module or "",
                    level=node.level,
                    names=names,
                    lineno=node.lineno,
                )
            )
    return sorted(references, key=lambda ref: ref.lineno)


class ImportResolver:
    """Maps import references to source files inside a fixed set of search roots.

    Absolute imports that resolve outside the roots (stdlib, installed
    packages) produce no files.
    """

    def __init__(self, search_roots: Sequence[Path]) -> None:
        self.search_roots = tuple(root.expanduser().resolve() for root in search_roots)

    def resolve(self, importer: Path, reference: ImportReference) -> List[Path]:
        parts = [part for part in reference.module.split(".") if part]
        if reference.level:
            base = importer.parent
            for _ in range(reference.level - 1):
                base = base.parent
            return self._resolve_from(base, parts, reference.names, relative=True)

        for root in self.search_roots:
            resolved = self._resolve_from(root, parts, reference.names, relative=False)
            if resolved:
                return resolved
        return []

    def _resolve_from(
        self,
        base: Path,
        parts: Sequence[str],
        names: Sequence[str],
        *,
        relative: bool,
    ) -> List[Path]:
        if not relative and not parts:
            return []

        files: List[Path] = []
        if relative:
            package_init = base / "__init__.py"
            if package_init.is_file():
                files.append(package_init)

        # Package whose submodules ``names`` may refer to.
        package = base
        for index, part in enumerate(parts):
            package_dir = package / part
            if package_dir.is_dir():
                init = package_dir / "__init__.py"
                if init.is_file():
                    files.append(init)
                package = package_dir
                continue
            module_file = package / f"{part}.py"
            if index == len(parts) - 1 and module_file.is_file():
                files.append(module_file)
                return _unique(files)
            # Unresolved segment: the module lives outside the search roots.
            return _unique(files) if relative else []

        for name in names:
            submodule = _module_path(package, name)
            if submodule is not None:
                files.append(submodule)
        return _unique(files)


def _module_path(package_dir: Path, name: str) -> Optional[Path]:
    candidate = package_dir / f"{name}.py"
    if candidate.is_file():
        return candidate
    init = package_dir / name / "__init__.py"
    if init.is_file():
        return init
    return None


def _unique(paths: Sequence[Path]) -> List[Path]:
    seen = set()
    unique: List[Path] = []
    for path in paths:
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        unique.append(resolved)
    return unique


__all__ = ["ImportReference", "ImportResolver", "parse_imports"]
