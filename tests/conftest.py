from __future__ import annotations

import sys
from pathlib import Path
from types import ModuleType
from typing import Iterator, List

import pytest

from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


def _module_locations(module: ModuleType) -> List[str]:
    locations = [getattr(module, "__file__", None) or ""]
    locations.extend(str(entry) for entry in getattr(module, "__path__", None) or [])
    return [location for location in locations if location]


@pytest.fixture(autouse=True)
def isolated_imports(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[None]:
    """Forget modules imported from throwaway projects so each test loads its own."""
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield
    base = str(tmp_path_factory.getbasetemp().resolve())
    for name, module in list(sys.modules.items()):
        if module is None:
            continue
        if any(str(Path(location).resolve()).startswith(base) for location in _module_locations(module)):
            del sys.modules[name]
