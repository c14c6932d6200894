"""Single-entry render pipeline executed inside a worker process.

Steps run in order: load the entry module, render its mount node, format the
markup, read the host template, merge, and write the artifact atomically. Each
step maps its failures to one :class:`~staticrender.models.ErrorKind`.
"""

from __future__ import annotations

import hashlib
import importlib.util
import os
import sys
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, List, Mapping, Optional, Tuple

from ..config import RenderConfig
from ..engines import InsertionPointNotFound, MergeContext, TemplateMergeError, create_template_engine
from ..logging import get_logger
from ..models import ErrorKind, MountDescriptor, RenderOutcome, RenderTask
from .markup import format_markup, render_to_static_markup

logger = get_logger("render")


class RenderFailure(Exception):
    """A pipeline step failed; converted to a failed :class:`RenderOutcome`."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        file_path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.file_path = file_path
        self.cause = cause
        detail = f"{message}: {cause}" if cause is not None else message
        super().__init__(detail)


def output_path_for(config: RenderConfig, entry_point: str) -> Path:
    """Return ``output_dir/<entry dir>/<stem><template_extension>``."""
    relative = PurePosixPath(entry_point)
    return config.output_dir.joinpath(*relative.parent.parts, relative.stem + config.template_extension)


def template_path_for(config: RenderConfig, entry_point: str) -> Path:
    relative = PurePosixPath(entry_point)
    return config.template_dir.joinpath(*relative.parent.parts, relative.stem + config.template_extension)


def load_mount_descriptor(config: RenderConfig, entry_point: str) -> MountDescriptor:
    """Import the entry module from scratch and read its mount export."""
    module_path = config.entry_points_dir.joinpath(*PurePosixPath(entry_point).parts)
    for root in reversed(config.search_roots):
        root_str = str(root)
        if root_str not in sys.path:
            sys.path.insert(0, root_str)

    digest = hashlib.sha1(str(module_path).encode("utf-8")).hexdigest()[:12]
    module_name = f"_staticrender_entry_{module_path.stem}_{digest}"
    try:
        spec = importlib.util.spec_from_file_location(module_name, module_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"No loader for {module_path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        causing_file = entry_point
        if isinstance(exc, SyntaxError) and exc.filename:
            causing_file = exc.filename
        raise RenderFailure(
            ErrorKind.MODULE_LOAD, "Failed to load module", file_path=causing_file, cause=exc
        ) from exc

    exported = getattr(module, config.mount_export, None)
    descriptor = _coerce_mount(exported)
    if descriptor is None:
        raise RenderFailure(
            ErrorKind.MODULE_LOAD,
            f"Invalid export '{config.mount_export}': must provide node and root_element_id",
            file_path=entry_point,
        )
    return descriptor


def _coerce_mount(exported: Any) -> Optional[MountDescriptor]:
    if isinstance(exported, MountDescriptor):
        node, root_element_id = exported.node, exported.root_element_id
    elif isinstance(exported, Mapping):
        if "node" not in exported or "root_element_id" not in exported:
            return None
        node, root_element_id = exported["node"], exported["root_element_id"]
    elif exported is not None and hasattr(exported, "node") and hasattr(exported, "root_element_id"):
        node, root_element_id = exported.node, exported.root_element_id
    else:
        return None
    if node is None or not isinstance(root_element_id, str) or not root_element_id.strip():
        return None
    return MountDescriptor(node=node, root_element_id=root_element_id.strip())


def render_markup(descriptor: MountDescriptor, entry_point: str) -> Tuple[str, str]:
    try:
        return render_to_static_markup(descriptor.node)
    except Exception as exc:
        raise RenderFailure(
            ErrorKind.RENDER, "Failed to render component", file_path=entry_point, cause=exc
        ) from exc


def format_output(
    config: RenderConfig, markup: str, styles: str, entry_point: str, warnings: List[str]
) -> Tuple[str, str]:
    if not config.format.enabled:
        return markup, styles
    try:
        formatted = format_markup(markup, config.format.indent)
        formatted_styles = format_markup(styles, config.format.indent) if styles else styles
    except Exception as exc:
        if config.format.required:
            raise RenderFailure(
                ErrorKind.FORMAT, "Markup formatting failed", file_path=entry_point, cause=exc
            ) from exc
        warnings.append(f"Markup formatting skipped: {exc}")
        logger.warning("Formatting failed for %s, writing unformatted markup: %s", entry_point, exc)
        return markup, styles
    return formatted, formatted_styles


def read_template(config: RenderConfig, entry_point: str) -> Tuple[Path, str]:
    primary = template_path_for(config, entry_point)
    candidates = [primary]
    if config.default_template:
        candidates.append(config.template_dir / config.default_template)

    for candidate in candidates:
        try:
            return candidate, candidate.read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise RenderFailure(
                ErrorKind.TEMPLATE, f"Failed to read template {candidate}", file_path=entry_point, cause=exc
            ) from exc

    message = f"Template not found: {primary}"
    if config.default_template:
        message += f" and default template not found: {candidates[-1]}"
    raise RenderFailure(ErrorKind.TEMPLATE, message, file_path=entry_point)


def merge_template(
    config: RenderConfig,
    template_path: Path,
    template: str,
    markup: str,
    styles: str,
    descriptor: MountDescriptor,
    entry_point: str,
) -> str:
    try:
        engine = create_template_engine(
            config.template_engine,
            template_path=template_path,
            template_text=template,
            custom_merge=config.custom_merge,
        )
        return engine.merge(
            MergeContext(
                template=template,
                content=markup,
                styles=styles,
                root_element_id=descriptor.root_element_id,
            )
        )
    except InsertionPointNotFound as exc:
        raise RenderFailure(
            ErrorKind.TEMPLATE,
            f'Root element id "{exc.root_element_id}" not found in template {template_path}',
            file_path=entry_point,
        ) from exc
    except TemplateMergeError as exc:
        raise RenderFailure(
            ErrorKind.TEMPLATE, "Template merge failed", file_path=entry_point, cause=exc
        ) from exc


def write_output(path: Path, content: str, entry_point: str) -> None:
    """Write via a sibling temporary file so a failure never leaves a partial artifact."""
    temp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(content)
        os.replace(temp_name, path)
    except OSError as exc:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise RenderFailure(
            ErrorKind.WRITE, f"Failed to write output {path}", file_path=entry_point, cause=exc
        ) from exc


def run_render_task(task: RenderTask) -> RenderOutcome:
    """Render one entry point end to end, returning its outcome."""
    config = task.config
    entry_point = task.entry_point
    warnings: List[str] = []
    try:
        descriptor = load_mount_descriptor(config, entry_point)
        markup, styles = render_markup(descriptor, entry_point)
        markup, styles = format_output(config, markup, styles, entry_point, warnings)
        template_path, template = read_template(config, entry_point)
        merged = merge_template(config, template_path, template, markup, styles, descriptor, entry_point)
        destination = output_path_for(config, entry_point)
        write_output(destination, merged, entry_point)
    except RenderFailure as failure:
        logger.debug("Render of %s failed", entry_point, exc_info=failure.cause or failure)
        return RenderOutcome.failure(entry_point, failure.kind, str(failure), file_path=failure.file_path)

    logger.info("Rendered: %s", destination.relative_to(config.output_dir).as_posix())
    return RenderOutcome.success(entry_point, destination, warnings=tuple(warnings))


__all__ = [
    "RenderFailure",
    "load_mount_descriptor",
    "output_path_for",
    "run_render_task",
    "template_path_for",
]
