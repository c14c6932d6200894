"""Tests for staticrender.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from staticrender.config import (
    ConfigError,
    RenderConfig,
    load_config,
    parse_config,
    write_default_config,
)


def _write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_applies_defaults(tmp_path: Path) -> None:
    _write_json(
        tmp_path / "staticrender.config.json",
        {"entry_points_dir": "src/pages", "output_dir": "dist", "template_dir": "templates"},
    )

    config = load_config(cwd=tmp_path)

    assert isinstance(config, RenderConfig)
    assert config.root == tmp_path.resolve()
    assert config.entry_points_dir == tmp_path.resolve() / "src" / "pages"
    assert config.src_dir == tmp_path.resolve()
    assert config.template_extension == ".html"
    assert config.template_engine == "auto"
    assert config.file_extensions == ("py",)
    assert config.mount_export == "mount"
    assert config.max_concurrent_renders is None
    assert config.concurrency_limit >= 1
    assert config.render_timeout == 30.0
    assert config.shutdown_grace == 5.0
    assert config.format.enabled is True
    assert config.watch.websocket_port == 8099
    assert config.watch.debounce == pytest.approx(0.1)


def test_load_config_prefers_json_over_rc_file(tmp_path: Path) -> None:
    _write_json(
        tmp_path / ".staticrenderrc.json",
        {"entry_points_dir": "rc", "output_dir": "out", "template_dir": "tpl"},
    )
    _write_json(
        tmp_path / "staticrender.config.json",
        {"entry_points_dir": "main", "output_dir": "out", "template_dir": "tpl"},
    )

    config = load_config(cwd=tmp_path)

    assert config.entry_points_dir.name == "main"
    assert config.config_path == (tmp_path / "staticrender.config.json").resolve()


def test_load_config_reads_pyproject_table(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        """
[project]
name = "site"

[tool.staticrender]
entry_points_dir = "pages"
output_dir = "public"
template_dir = "layouts"
max_concurrent_renders = 3
""",
        encoding="utf-8",
    )

    config = load_config(cwd=tmp_path)

    assert config.output_dir == tmp_path.resolve() / "public"
    assert config.max_concurrent_renders == 3
    assert config.concurrency_limit == 3


def test_load_config_ignores_foreign_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "other"\n', encoding="utf-8")

    with pytest.raises(ConfigError, match="No configuration file found"):
        load_config(cwd=tmp_path)


def test_load_config_reports_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Failed to load config"):
        load_config(tmp_path / "missing.json")


def test_load_config_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "staticrender.config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse JSON"):
        load_config(path)


def test_parse_config_collects_every_problem(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as excinfo:
        parse_config(
            {
                "output_dir": 5,
                "template_extension": "html",
                "max_concurrent_renders": 0,
                "watch": {"websocket_port": 80},
                "template_engine": "custom",
            },
            root=tmp_path,
        )

    details = excinfo.value.details
    assert '"entry_points_dir" is required' in details
    assert '"template_dir" is required' in details
    assert '"output_dir" must be a non-empty string' in details
    assert '"template_extension" must start with "."' in details
    assert any("max_concurrent_renders" in detail for detail in details)
    assert any("websocket_port" in detail for detail in details)
    assert any("custom_merge" in detail for detail in details)
    assert "  - " in str(excinfo.value)


def test_parse_config_accepts_format_flag_and_ignores_unknown_keys(tmp_path: Path) -> None:
    config = parse_config(
        {
            "entry_points_dir": "e",
            "output_dir": "o",
            "template_dir": "t",
            "format": False,
            "unknown": {"anything": True},
            "file_extensions": [".PY", "pyw"],
        },
        root=tmp_path,
    )

    assert config.format.enabled is False
    assert config.file_extensions == ("py", "pyw")


def test_with_overrides_returns_new_snapshot(tmp_path: Path) -> None:
    config = parse_config(
        {"entry_points_dir": "e", "output_dir": "o", "template_dir": "t"}, root=tmp_path
    )

    updated = config.with_overrides(output_dir=tmp_path / "elsewhere", websocket_port=9000, verbose=True)

    assert updated is not config
    assert updated.output_dir == (tmp_path / "elsewhere").resolve()
    assert updated.watch.websocket_port == 9000
    assert updated.verbose is True
    assert config.watch.websocket_port == 8099

    with pytest.raises(ConfigError):
        config.with_overrides(websocket_port=70000)


def test_config_round_trips_through_payload_dict(tmp_path: Path) -> None:
    config = parse_config(
        {
            "entry_points_dir": "e",
            "output_dir": "o",
            "template_dir": "t",
            "default_template": "base.html",
            "watch": {"patterns": ["assets/*.css"]},
        },
        root=tmp_path,
    )

    assert RenderConfig.from_dict(json.loads(json.dumps(config.to_dict()))) == config


def test_write_default_config_refuses_to_overwrite(tmp_path: Path) -> None:
    target = tmp_path / "staticrender.config.json"
    write_default_config(target, entry_points_dir="pages")

    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["entry_points_dir"] == "pages"
    assert data["watch"]["websocket_port"] == 8099

    with pytest.raises(FileExistsError):
        write_default_config(target)

    write_default_config(target, force=True, output_dir="public")
    assert json.loads(target.read_text(encoding="utf-8"))["output_dir"] == "public"
