"""Tests for dependency graph construction."""

from __future__ import annotations

from pathlib import Path

from staticrender.discovery import EntryPointScanner
from staticrender.graph import DependencyGraph, DependencyGraphBuilder, derive_watch_targets, transpose
from tests._fixtures.project_builder import ProjectBuilder


def _site(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/components/__init__.py": "",
            "src/components/footer.py": """
                from markupsafe import Markup

                def footer():
                    return Markup("<footer>f</footer>")
            """,
            "src/components/header.py": """
                from markupsafe import Markup
                from .utils import title_case

                def header(text):
                    return Markup("<h1>{}</h1>").format(title_case(text))
            """,
            "src/components/utils.py": """
                def title_case(text):
                    return text.title()
            """,
            "src/entry_points/home.py": """
                import json
                from components.footer import footer
                from components.header import header

                node = header("home") + footer()
                mount = {"node": node, "root_element_id": "root"}
            """,
            "src/entry_points/about.py": """
                from components import footer

                mount = {"node": footer.footer(), "root_element_id": "root"}
            """,
            "src/entry_points/contact.py": """
                import os.path

                mount = {"node": "contact", "root_element_id": "root"}
            """,
        }
    )


def _build(project: ProjectBuilder) -> DependencyGraph:
    config = project.config()
    entries = EntryPointScanner.from_config(config).scan(config.entry_points_dir)
    return DependencyGraphBuilder.from_config(config).build(entries)


def test_forward_closure_follows_absolute_relative_and_submodule_imports(project: ProjectBuilder) -> None:
    _site(project)
    graph = _build(project)
    src = project.path("src")

    home = src / "entry_points" / "home.py"
    assert graph.dependencies_of(home) == {
        src / "components" / "__init__.py",
        src / "components" / "footer.py",
        src / "components" / "header.py",
        src / "components" / "utils.py",
    }
    about = src / "entry_points" / "about.py"
    assert graph.dependencies_of(about) == {
        src / "components" / "__init__.py",
        src / "components" / "footer.py",
    }
    assert graph.dependencies_of(src / "entry_points" / "contact.py") == frozenset()
    assert home not in graph.dependencies_of(home)
    assert not graph.failures


def test_reverse_is_exact_transpose_of_forward(project: ProjectBuilder) -> None:
    _site(project)
    graph = _build(project)

    assert graph.reverse == transpose(graph.forward)
    for entry, dependencies in graph.forward.items():
        for dependency in dependencies:
            assert entry in graph.dependents_of(dependency)
    for dependency, entries in graph.reverse.items():
        for entry in entries:
            assert dependency in graph.dependencies_of(entry)


def test_shared_dependency_affects_every_importer(project: ProjectBuilder) -> None:
    _site(project)
    graph = _build(project)
    src = project.path("src")

    assert graph.affected_entry_points(src / "components" / "footer.py") == {
        src / "entry_points" / "home.py",
        src / "entry_points" / "about.py",
    }
    assert graph.affected_entry_points(src / "components" / "utils.py") == {
        src / "entry_points" / "home.py",
    }
    assert graph.affected_entry_points(src / "unrelated.py") == frozenset()


def test_rebuild_from_unchanged_tree_is_identical(project: ProjectBuilder) -> None:
    _site(project)

    first = _build(project)
    second = _build(project)

    assert first.forward == second.forward
    assert first.reverse == second.reverse


def test_import_cycles_terminate(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/a.py": "import b\n",
            "src/b.py": "import a\n",
            "src/entry_points/page.py": "import a\nmount = None\n",
        }
    )
    graph = _build(project)
    src = project.path("src")

    assert graph.dependencies_of(src / "entry_points" / "page.py") == {src / "a.py", src / "b.py"}


def test_parse_failure_keeps_partial_closure(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/components/broken.py": "def oops(:\n",
            "src/components/fine.py": "VALUE = 1\n",
            "src/entry_points/shop.py": "import components.fine\nimport components.broken\n",
            "src/entry_points/home.py": "import components.fine\n",
        }
    )
    graph = _build(project)
    src = project.path("src")
    shop = src / "entry_points" / "shop.py"

    assert shop in graph.failures
    failure = graph.failures[shop]
    assert failure.entry_point == "shop.py"
    assert failure.file_path == src / "components" / "broken.py"
    assert src / "components" / "broken.py" in graph.dependencies_of(shop)
    assert graph.affected_entry_points(src / "components" / "broken.py") == {shop}
    assert src / "entry_points" / "home.py" not in graph.failures


def test_vendored_paths_are_opaque(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/.venv/lib/site-packages/vendored.py": "X = 1\n",
            "src/entry_points/page.py": "import vendored\n",
        }
    )
    config = project.config(src_dir="src/.venv/lib/site-packages")
    entries = EntryPointScanner.from_config(config).scan(config.entry_points_dir)

    graph = DependencyGraphBuilder.from_config(config).build(entries)

    assert graph.dependencies_of(entries[0].absolute_path) == frozenset()


def test_watch_targets_cover_roots_nodes_and_patterns(project: ProjectBuilder) -> None:
    _site(project)
    project.write({"assets/site.css": "body {}\n", "assets/fonts/readme.txt": "x\n"})
    config = project.config(watch={"patterns": ["assets/*.css", "assets/fonts"]})
    entries = EntryPointScanner.from_config(config).scan(config.entry_points_dir)
    graph = DependencyGraphBuilder.from_config(config).build(entries)

    targets = derive_watch_targets(config, graph)
    root = project.path()

    assert config.entry_points_dir in targets.recursive
    assert config.template_dir in targets.recursive
    assert root / "assets" / "fonts" in targets.recursive
    assert root / "src" / "components" in targets.flat
    assert root / "assets" in targets.flat
    # Entry-point directories are already covered recursively.
    assert config.entry_points_dir not in targets.flat
    assert root not in targets.flat
    assert root / "src" not in targets.flat


def test_empty_graph_has_no_nodes() -> None:
    graph = DependencyGraph.from_forward({})

    assert graph.nodes() == frozenset()
    assert graph.affected_entry_points(Path("/nowhere.py")) == frozenset()
