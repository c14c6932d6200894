"""Tests for staticrender.discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from staticrender.discovery import EntryPointScanner, is_vendored


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_returns_sorted_entry_points(tmp_path: Path) -> None:
    root = tmp_path / "entries"
    _write(root / "home.py")
    _write(root / "blog" / "post.py")
    _write(root / "about.py")
    _write(root / "_shared.py")
    _write(root / "__init__.py")
    _write(root / "notes.txt")
    _write(root / "__pycache__" / "home.py")
    _write(root / ".hidden" / "secret.py")

    entries = EntryPointScanner().scan(root)

    assert [entry.path for entry in entries] == ["about.py", "blog/post.py", "home.py"]
    assert entries[1].name == "post"
    assert entries[1].absolute_path == (root / "blog" / "post.py").resolve()


def test_scan_honours_configured_extensions(tmp_path: Path) -> None:
    root = tmp_path / "entries"
    _write(root / "home.py")
    _write(root / "landing.pyw")

    entries = EntryPointScanner(["pyw"]).scan(root)

    assert [entry.path for entry in entries] == ["landing.pyw"]


def test_scan_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        EntryPointScanner().scan(tmp_path / "absent")


def test_resolve_accepts_root_relative_and_cwd_relative_paths(tmp_path: Path) -> None:
    root = tmp_path / "entries"
    _write(root / "blog" / "post.py")
    scanner = EntryPointScanner()

    assert scanner.resolve(root, "blog/post.py").path == "blog/post.py"
    assert scanner.resolve(root, "entries/blog/post.py", cwd=tmp_path).path == "blog/post.py"
    assert scanner.resolve(root, str(root / "blog" / "post.py")).path == "blog/post.py"

    with pytest.raises(FileNotFoundError):
        scanner.resolve(root, "missing.py")


def test_find_by_stem_matches_nested_entries(tmp_path: Path) -> None:
    root = tmp_path / "entries"
    _write(root / "index.py")
    _write(root / "docs" / "index.py")
    _write(root / "about.py")

    matches = EntryPointScanner().find_by_stem(root, "index")

    assert sorted(entry.path for entry in matches) == ["docs/index.py", "index.py"]
    assert EntryPointScanner().find_by_stem(root, "contact") == []


def test_is_vendored_detects_installed_code() -> None:
    assert is_vendored(Path("/app/.venv/lib/python3.12/site-packages/markupsafe/__init__.py"))
    assert not is_vendored(Path("/app/src/components/header.py"))
