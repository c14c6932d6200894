"""Configuration loading for staticrender (staticrender.config.json)."""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

CONFIG_FILENAMES: Tuple[str, ...] = (
    "staticrender.config.json",
    ".staticrenderrc.json",
    "pyproject.toml",
)
DEFAULT_CONFIG_FILENAME = CONFIG_FILENAMES[0]
BUILTIN_TEMPLATE_ENGINES: Tuple[str, ...] = ("auto", "html", "php", "liquid", "custom")
AUTOMATIC = "auto"

_PYPROJECT_TABLE = "staticrender"
_MIN_PORT = 1024
_MAX_PORT = 65535


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be located, parsed, or validated."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        details: Sequence[str] = (),
    ) -> None:
        self.path = path
        self.details = list(details)
        full_message = message
        if self.details:
            full_message += "\n" + "\n".join(f"  - {detail}" for detail in self.details)
        super().__init__(full_message)


@dataclass(frozen=True)
class FormatConfig:
    """Markup formatting applied after rendering."""

    enabled: bool = True
    required: bool = False
    indent: int = 2


@dataclass(frozen=True)
class WatchConfig:
    """Watch-mode settings."""

    patterns: Tuple[str, ...] = ()
    debounce: float = 0.1
    websocket_port: int = 8099


@dataclass(frozen=True)
class RenderConfig:
    """Validated, immutable settings shared by every render task of a session."""

    root: Path
    entry_points_dir: Path
    output_dir: Path
    template_dir: Path
    src_dir: Path
    default_template: Optional[str] = None
    template_extension: str = ".html"
    template_engine: str = AUTOMATIC
    custom_merge: Optional[str] = None
    file_extensions: Tuple[str, ...] = ("py",)
    mount_export: str = "mount"
    max_concurrent_renders: Optional[int] = None
    render_timeout: float = 30.0
    shutdown_grace: float = 5.0
    format: FormatConfig = field(default_factory=FormatConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    verbose: bool = False
    config_path: Optional[Path] = None

    @property
    def concurrency_limit(self) -> int:
        """Return the render concurrency bound, deriving it from CPU count when automatic."""
        if self.max_concurrent_renders is None:
            return max(1, os.cpu_count() or 1)
        return max(1, self.max_concurrent_renders)

    @property
    def search_roots(self) -> Tuple[Path, ...]:
        """Directories that absolute imports of entry points resolve against."""
        roots = [self.src_dir]
        if self.entry_points_dir != self.src_dir:
            roots.append(self.entry_points_dir)
        return tuple(roots)

    def with_overrides(
        self,
        *,
        output_dir: str | Path | None = None,
        websocket_port: int | None = None,
        verbose: bool | None = None,
    ) -> "RenderConfig":
        """Return a new snapshot with command-line overrides applied."""
        config = self
        if output_dir is not None:
            config = replace(config, output_dir=Path(output_dir).expanduser().resolve())
        if websocket_port is not None:
            if not _MIN_PORT <= websocket_port <= _MAX_PORT:
                raise ConfigError(
                    f"WebSocket port must be between {_MIN_PORT} and {_MAX_PORT}",
                    path=self.config_path,
                )
            config = replace(config, watch=replace(config.watch, websocket_port=websocket_port))
        if verbose:
            config = replace(config, verbose=True)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a JSON-safe mapping accepted by :func:`parse_config`."""
        return {
            "root": str(self.root),
            "entry_points_dir": str(self.entry_points_dir),
            "output_dir": str(self.output_dir),
            "template_dir": str(self.template_dir),
            "src_dir": str(self.src_dir),
            "default_template": self.default_template,
            "template_extension": self.template_extension,
            "template_engine": self.template_engine,
            "custom_merge": self.custom_merge,
            "file_extensions": list(self.file_extensions),
            "mount_export": self.mount_export,
            "max_concurrent_renders": (
                self.max_concurrent_renders
                if self.max_concurrent_renders is not None
                else AUTOMATIC
            ),
            "render_timeout": self.render_timeout,
            "shutdown_grace": self.shutdown_grace,
            "format": {
                "enabled": self.format.enabled,
                "required": self.format.required,
                "indent": self.format.indent,
            },
            "watch": {
                "patterns": list(self.watch.patterns),
                "debounce": self.watch.debounce,
                "websocket_port": self.watch.websocket_port,
            },
            "verbose": self.verbose,
            "config_path": str(self.config_path) if self.config_path else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RenderConfig":
        root = _as_str(data.get("root"))
        if not root:
            raise ConfigError("Serialised configuration is missing its root directory")
        config_path = _as_str(data.get("config_path"))
        return parse_config(
            data,
            root=Path(root),
            config_path=Path(config_path) if config_path else None,
        )


def load_config(config_path: str | Path | None = None, *, cwd: Path | None = None) -> RenderConfig:
    """Locate, parse, and validate the configuration file."""
    base = (cwd or Path.cwd()).expanduser().resolve()
    config_file = _resolve_config_path(config_path, base)
    data = _read_config(config_file)
    return parse_config(data, root=config_file.parent, config_path=config_file)


def parse_config(
    data: Mapping[str, Any],
    *,
    root: Path,
    config_path: Path | None = None,
) -> RenderConfig:
    """Validate raw configuration data, collecting every problem before failing."""
    errors: List[str] = []
    root = root.expanduser().resolve()

    entry_points_dir = _required_path(data, "entry_points_dir", root, errors)
    output_dir = _required_path(data, "output_dir", root, errors)
    template_dir = _required_path(data, "template_dir", root, errors)
    src_dir = _optional_path(data, "src_dir", root, errors) or root

    default_template = _optional_str(data, "default_template", errors)

    template_extension = _optional_str(data, "template_extension", errors) or ".html"
    if not template_extension.startswith("."):
        errors.append('"template_extension" must start with "."')

    template_engine = (_optional_str(data, "template_engine", errors) or AUTOMATIC).lower()
    custom_merge = _optional_str(data, "custom_merge", errors)
    if template_engine == "custom" and not custom_merge:
        errors.append('"custom_merge" is required when "template_engine" is "custom"')
    if custom_merge and ":" not in custom_merge:
        errors.append('"custom_merge" must use the "module:function" form')

    file_extensions = _extension_list(data.get("file_extensions"), errors)
    mount_export = _optional_str(data, "mount_export", errors) or "mount"
    max_concurrent = _concurrency(data.get("max_concurrent_renders"), errors)
    render_timeout = _seconds(data, "render_timeout", 30.0, errors, allow_zero=False)
    shutdown_grace = _seconds(data, "shutdown_grace", 5.0, errors, allow_zero=True)
    format_config = _format_config(data.get("format"), errors)
    watch_config = _watch_config(data.get("watch"), errors)

    verbose = False
    if data.get("verbose") is not None:
        parsed_verbose = _as_bool(data.get("verbose"))
        if parsed_verbose is None:
            errors.append('"verbose" must be a boolean')
        else:
            verbose = parsed_verbose

    if errors or entry_points_dir is None or output_dir is None or template_dir is None:
        raise ConfigError("Invalid configuration", path=config_path, details=errors)

    return RenderConfig(
        root=root,
        entry_points_dir=entry_points_dir,
        output_dir=output_dir,
        template_dir=template_dir,
        src_dir=src_dir,
        default_template=default_template,
        template_extension=template_extension,
        template_engine=template_engine,
        custom_merge=custom_merge,
        file_extensions=file_extensions,
        mount_export=mount_export,
        max_concurrent_renders=max_concurrent,
        render_timeout=render_timeout,
        shutdown_grace=shutdown_grace,
        format=format_config,
        watch=watch_config,
        verbose=verbose,
        config_path=config_path,
    )


def default_config_data(
    *,
    entry_points_dir: str = "src/entry_points",
    output_dir: str = "dist",
    template_dir: str = "templates",
    template_engine: str = AUTOMATIC,
) -> Dict[str, Any]:
    """Return the configuration written by ``staticrender init``."""
    return {
        "entry_points_dir": entry_points_dir,
        "src_dir": "src",
        "output_dir": output_dir,
        "template_dir": template_dir,
        "template_extension": ".html",
        "template_engine": template_engine,
        "file_extensions": ["py"],
        "mount_export": "mount",
        "max_concurrent_renders": AUTOMATIC,
        "render_timeout": 30,
        "shutdown_grace": 5,
        "format": {"enabled": True, "required": False, "indent": 2},
        "watch": {"patterns": [], "debounce": 0.1, "websocket_port": 8099},
        "verbose": False,
    }


def write_default_config(path: Path, *, force: bool = False, **values: str) -> Path:
    """Write a default configuration file, refusing to overwrite unless forced."""
    target = path.expanduser().resolve()
    if target.exists() and not force:
        raise FileExistsError(
            f"Configuration file already exists at {target}. Use --force to overwrite."
        )
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = default_config_data(**values)
    target.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return target


def _resolve_config_path(config_path: str | Path | None, base: Path) -> Path:
    if config_path is not None:
        candidate = Path(config_path).expanduser()
        if not candidate.is_absolute():
            candidate = base / candidate
        candidate = candidate.resolve()
        if candidate.is_dir():
            found = _search_config(candidate)
            if found is None:
                raise ConfigError(f"No configuration file found in {candidate}", path=candidate)
            return found
        if not candidate.is_file():
            raise ConfigError(f"Failed to load config from {config_path}", path=candidate)
        return candidate

    found = _search_config(base)
    if found is None:
        raise ConfigError(
            "No configuration file found. Create staticrender.config.json "
            "(`staticrender init`) or pass --config."
        )
    return found


def _search_config(directory: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        candidate = directory / name
        if not candidate.is_file():
            continue
        if name == "pyproject.toml":
            # Most Python projects ship a pyproject.toml; only claim ours.
            text = candidate.read_text(encoding="utf-8")
            if _pyproject_table(text, candidate) is None:
                continue
        return candidate
    return None


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to load config from {path}: {exc}", path=path) from exc

    if path.name == "pyproject.toml":
        table = _pyproject_table(text, path)
        if table is None:
            raise ConfigError(
                f"pyproject.toml does not contain a [tool.{_PYPROJECT_TABLE}] table",
                path=path,
            )
        return table

    if not text.strip():
        return {}
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse JSON in {path.name}: {exc}", path=path) from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a JSON object at the root", path=path)
    return loaded


def _pyproject_table(text: str, path: Path) -> Dict[str, Any] | None:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}", path=path) from exc
    tool = data.get("tool")
    if not isinstance(tool, dict):
        return None
    table = tool.get(_PYPROJECT_TABLE)
    return table if isinstance(table, dict) else None


def _resolve_path(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _required_path(
    data: Mapping[str, Any], key: str, root: Path, errors: List[str]
) -> Optional[Path]:
    value = data.get(key)
    if value is None:
        errors.append(f'"{key}" is required')
        return None
    if not isinstance(value, str) or not value.strip():
        errors.append(f'"{key}" must be a non-empty string')
        return None
    return _resolve_path(root, value)


def _optional_path(
    data: Mapping[str, Any], key: str, root: Path, errors: List[str]
) -> Optional[Path]:
    value = _optional_str(data, key, errors)
    return _resolve_path(root, value) if value else None


def _optional_str(data: Mapping[str, Any], key: str, errors: List[str]) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f'"{key}" must be a string')
        return None
    return value.strip() or None


def _extension_list(value: Any, errors: List[str]) -> Tuple[str, ...]:
    if value is None:
        return ("py",)
    if isinstance(value, str):
        value = [value]
    if (
        not isinstance(value, (list, tuple))
        or not value
        or not all(isinstance(item, str) and item.strip().lstrip(".") for item in value)
    ):
        errors.append('"file_extensions" must be a non-empty list of strings')
        return ("py",)
    return tuple(item.strip().lstrip(".").lower() for item in value)


def _concurrency(value: Any, errors: List[str]) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.lower() == AUTOMATIC):
        return None
    parsed = _as_int(value)
    if parsed is None or parsed < 1:
        errors.append('"max_concurrent_renders" must be an integer >= 1 or "auto"')
        return None
    return parsed


def _seconds(
    data: Mapping[str, Any],
    key: str,
    default: float,
    errors: List[str],
    *,
    allow_zero: bool,
) -> float:
    value = data.get(key)
    if value is None:
        return default
    parsed = _as_float(value)
    if parsed is None or parsed < 0 or (parsed == 0 and not allow_zero):
        qualifier = ">= 0" if allow_zero else "> 0"
        errors.append(f'"{key}" must be a number of seconds {qualifier}')
        return default
    return parsed


def _format_config(value: Any, errors: List[str]) -> FormatConfig:
    if value is None:
        return FormatConfig()
    if isinstance(value, bool):
        return FormatConfig(enabled=value)
    if not isinstance(value, dict):
        errors.append('"format" must be an object or a boolean')
        return FormatConfig()

    defaults = FormatConfig()
    enabled = _as_bool(value.get("enabled", defaults.enabled))
    required = _as_bool(value.get("required", defaults.required))
    indent = _as_int(value.get("indent", defaults.indent))
    if enabled is None:
        errors.append('"format.enabled" must be a boolean')
    if required is None:
        errors.append('"format.required" must be a boolean')
    if indent is None or indent < 0:
        errors.append('"format.indent" must be a non-negative integer')
    return FormatConfig(
        enabled=defaults.enabled if enabled is None else enabled,
        required=defaults.required if required is None else required,
        indent=defaults.indent if indent is None or indent < 0 else indent,
    )


def _watch_config(value: Any, errors: List[str]) -> WatchConfig:
    if value is None:
        return WatchConfig()
    if not isinstance(value, dict):
        errors.append('"watch" must be an object')
        return WatchConfig()

    defaults = WatchConfig()
    patterns_raw = value.get("patterns")
    patterns = _as_str_list(patterns_raw)
    if patterns_raw is not None and not isinstance(patterns_raw, list):
        errors.append('"watch.patterns" must be a list of strings')

    debounce = _as_float(value.get("debounce", defaults.debounce))
    if debounce is None or debounce < 0:
        errors.append('"watch.debounce" must be a number of seconds >= 0')
        debounce = defaults.debounce

    port = _as_int(value.get("websocket_port", defaults.websocket_port))
    if port is None or not _MIN_PORT <= port <= _MAX_PORT:
        errors.append(f'"watch.websocket_port" must be an integer between {_MIN_PORT} and {_MAX_PORT}')
        port = defaults.websocket_port

    return WatchConfig(patterns=tuple(patterns), debounce=debounce, websocket_port=port)


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, str)]
    return []


__all__ = [
    "AUTOMATIC",
    "BUILTIN_TEMPLATE_ENGINES",
    "CONFIG_FILENAMES",
    "ConfigError",
    "DEFAULT_CONFIG_FILENAME",
    "FormatConfig",
    "RenderConfig",
    "WatchConfig",
    "default_config_data",
    "load_config",
    "parse_config",
    "write_default_config",
]
