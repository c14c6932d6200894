"""Template-merge engines and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .base import (
    InsertionPointNotFound,
    MergeContext,
    TemplateEngine,
    TemplateMergeError,
)
from .custom import CustomTemplateEngine
from .html import HtmlTemplateEngine
from .liquid import LiquidTemplateEngine, is_liquid_template
from .php import PhpTemplateEngine, is_php_template

_ENTRY_POINT_GROUP = "staticrender.engines"
_AUTO = "auto"

_BUILTIN_FACTORIES: Dict[str, Callable[[], TemplateEngine]] = {
    "html": HtmlTemplateEngine,
    "php": PhpTemplateEngine,
    "liquid": LiquidTemplateEngine,
}


def available_engines() -> List[str]:
    """Return the names accepted by ``template_engine``, built-ins first."""
    names = [_AUTO, *_BUILTIN_FACTORIES, CustomTemplateEngine.name]
    for entry in _iter_entry_points():
        if entry.name.lower() not in names:
            names.append(entry.name.lower())
    return names


def create_template_engine(
    name: str,
    *,
    template_path: Path | None = None,
    template_text: str | None = None,
    custom_merge: str | None = None,
) -> TemplateEngine:
    """Instantiate the engine configured by ``name``.

    ``auto`` picks by template extension, then by sniffing the template text,
    and falls back to plain HTML.
    """
    key = name.lower()
    if key == _AUTO:
        return _select_automatically(template_path, template_text)
    if key == CustomTemplateEngine.name:
        if not custom_merge:
            raise TemplateMergeError("The custom template engine requires 'custom_merge'")
        return CustomTemplateEngine(custom_merge)
    if key in _BUILTIN_FACTORIES:
        return _BUILTIN_FACTORIES[key]()

    for entry in _iter_entry_points():
        if entry.name.lower() != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            raise TemplateMergeError(f"Failed to load template engine entry point '{name}': {exc}") from exc
        return _coerce_engine(loaded)

    raise TemplateMergeError(
        f"Unknown template engine '{name}'. Available: {', '.join(available_engines())}"
    )


def _select_automatically(template_path: Path | None, template_text: str | None) -> TemplateEngine:
    engines = [factory() for factory in _BUILTIN_FACTORIES.values()]
    if template_path is not None and template_path.suffix:
        for engine in engines:
            if engine.supports(template_path.suffix):
                # An .html file full of Liquid tags is still a Liquid template.
                if isinstance(engine, HtmlTemplateEngine) and template_text:
                    detected = detect_engine(template_text)
                    if detected is not None:
                        return detected
                return engine
    if template_text:
        detected = detect_engine(template_text)
        if detected is not None:
            return detected
    return HtmlTemplateEngine()


def detect_engine(template_text: str) -> Optional[TemplateEngine]:
    """Guess the engine from template content; ``None`` when nothing stands out."""
    if is_liquid_template(template_text):
        return LiquidTemplateEngine()
    if is_php_template(template_text):
        return PhpTemplateEngine()
    return None


def _coerce_engine(obj: object) -> TemplateEngine:
    if isinstance(obj, TemplateEngine):
        return obj
    if isinstance(obj, type) and issubclass(obj, TemplateEngine):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, TemplateEngine):
            return instance
    raise TemplateMergeError("Template engine entry point must be a TemplateEngine subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CustomTemplateEngine",
    "HtmlTemplateEngine",
    "InsertionPointNotFound",
    "LiquidTemplateEngine",
    "MergeContext",
    "PhpTemplateEngine",
    "TemplateEngine",
    "TemplateMergeError",
    "available_engines",
    "create_template_engine",
    "detect_engine",
    "is_liquid_template",
    "is_php_template",
]
