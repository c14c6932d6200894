"""Tests for change classification."""

from __future__ import annotations

import logging

import pytest

from staticrender.discovery import EntryPointScanner
from staticrender.graph import DependencyGraphBuilder
from staticrender.models import ChangeEvent, ChangeKind
from staticrender.watcher import ChangeCategory, ChangeClassifier
from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def classifier(project: ProjectBuilder) -> ChangeClassifier:
    project.write(
        {
            "src/components/footer.py": "FOOTER = '<footer/>'\n",
            "src/components/nav.py": "from components.footer import FOOTER\n",
            "src/entry_points/home.py": "from components.nav import FOOTER\n",
            "src/entry_points/about.py": "from components.footer import FOOTER\n",
            "src/entry_points/blog/index.py": "X = 1\n",
            "src/entry_points/index.py": "X = 1\n",
            "src/entry_points/_helpers.py": "X = 1\n",
            "src/entry_points/notes.md": "# notes\n",
            "templates/index.html": "<div id='root'></div>\n",
            "templates/orphan.html": "<div id='root'></div>\n",
        }
    )
    config = project.config()
    entries = EntryPointScanner.from_config(config).scan(config.entry_points_dir)
    graph = DependencyGraphBuilder.from_config(config).build(entries)
    return ChangeClassifier(config, graph)


def _event(project: ProjectBuilder, relative: str, kind: ChangeKind = ChangeKind.MODIFIED) -> ChangeEvent:
    return ChangeEvent(path=project.path(relative), kind=kind)


def test_entry_point_without_importers_affects_only_itself(project: ProjectBuilder, classifier: ChangeClassifier) -> None:
    result = classifier.classify(_event(project, "src/entry_points/home.py"))

    assert result.category is ChangeCategory.ENTRY_POINT
    assert result.affected == {"home.py"}


def test_removed_entry_point_is_not_rendered(project: ProjectBuilder, classifier: ChangeClassifier) -> None:
    result = classifier.classify(_event(project, "src/entry_points/home.py", ChangeKind.REMOVED))

    assert result.category is ChangeCategory.ENTRY_POINT
    assert result.affected == frozenset()
    assert result.rebuild is True


def test_transitive_dependency_change_affects_importers(
    project: ProjectBuilder, classifier: ChangeClassifier
) -> None:
    result = classifier.classify(_event(project, "src/components/footer.py"))

    assert result.category is ChangeCategory.DEPENDENCY
    assert result.affected == {"home.py", "about.py"}


def test_template_change_maps_to_every_entry_with_that_stem(
    project: ProjectBuilder, classifier: ChangeClassifier
) -> None:
    result = classifier.classify(_event(project, "templates/index.html"))

    assert result.category is ChangeCategory.TEMPLATE
    assert result.affected == {"index.py", "blog/index.py"}


def test_template_without_entry_point_is_a_debug_notice(
    project: ProjectBuilder,
    classifier: ChangeClassifier,
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(logging.getLogger("staticrender"), "propagate", True)
    with caplog.at_level(logging.DEBUG, logger="staticrender"):
        result = classifier.classify(_event(project, "templates/orphan.html"))

    assert result.category is ChangeCategory.TEMPLATE
    assert result.affected == frozenset()
    assert any("orphan.html" in record.getMessage() for record in caplog.records)
    assert all(record.levelno == logging.DEBUG for record in caplog.records)


def test_unsupported_and_unknown_files_are_ignored(
    project: ProjectBuilder, classifier: ChangeClassifier
) -> None:
    assert classifier.classify(_event(project, "src/entry_points/notes.md")).category is ChangeCategory.IGNORED
    assert classifier.classify(_event(project, "README.txt")).category is ChangeCategory.IGNORED

    untracked = classifier.classify(_event(project, "src/components/unused.py"))
    assert untracked.category is ChangeCategory.DEPENDENCY
    assert untracked.affected == frozenset()


def test_private_module_in_entry_root_is_treated_as_dependency(
    project: ProjectBuilder, classifier: ChangeClassifier
) -> None:
    result = classifier.classify(_event(project, "src/entry_points/_helpers.py"))

    assert result.category is ChangeCategory.DEPENDENCY


def test_batch_union_deduplicates(project: ProjectBuilder, classifier: ChangeClassifier) -> None:
    affected = classifier.affected_by(
        [
            _event(project, "src/components/footer.py"),
            _event(project, "src/components/nav.py"),
            _event(project, "src/entry_points/home.py"),
        ]
    )

    assert affected == {"home.py", "about.py"}


def test_entry_point_change_also_affects_entries_importing_it(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/entry_points/shared_page.py": "TITLE = 'shared'\n",
            "src/entry_points/landing.py": "from shared_page import TITLE\n",
            "src/entry_points/other.py": "X = 1\n",
        }
    )
    config = project.config()
    entries = EntryPointScanner.from_config(config).scan(config.entry_points_dir)
    classifier = ChangeClassifier(config, DependencyGraphBuilder.from_config(config).build(entries))

    modified = classifier.classify(_event(project, "src/entry_points/shared_page.py"))
    removed = classifier.classify(_event(project, "src/entry_points/shared_page.py", ChangeKind.REMOVED))

    assert modified.category is ChangeCategory.ENTRY_POINT
    assert modified.affected == {"shared_page.py", "landing.py"}
    assert removed.affected == {"landing.py"}
    assert removed.rebuild is True
