"""Template engine delegating to a user-supplied ``module:function`` hook."""

from __future__ import annotations

import importlib
from typing import Callable, Tuple

from .base import MergeContext, TemplateEngine, TemplateMergeError

MergeHook = Callable[..., str]


def load_hook(reference: str) -> MergeHook:
    """Import ``module:function`` (dotted attribute paths allowed after the colon)."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise TemplateMergeError(
            f"Custom merge hook '{reference}' must use the 'module:function' form"
        )
    try:
        target: object = importlib.import_module(module_name)
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as exc:
        raise TemplateMergeError(f"Unable to import custom merge hook '{reference}': {exc}") from exc
    if not callable(target):
        raise TemplateMergeError(f"Custom merge hook '{reference}' is not callable")
    return target  # type: ignore[return-value]


class CustomTemplateEngine(TemplateEngine):
    """Calls ``hook(template, content, styles, root_element_id)`` and returns its string."""

    name = "custom"
    file_extensions: Tuple[str, ...] = ()

    def __init__(self, reference: str) -> None:
        self.reference = reference
        self._hook = load_hook(reference)

    def merge(self, context: MergeContext) -> str:
        self.validate(context)
        try:
            result = self._hook(
                context.template,
                context.content,
                context.styles,
                context.root_element_id,
            )
        except LookupError:
            raise
        except Exception as exc:
            raise TemplateMergeError(f"Custom merge hook '{self.reference}' failed: {exc}") from exc
        if not isinstance(result, str):
            raise TemplateMergeError(
                f"Custom merge hook '{self.reference}' returned {type(result).__name__}, expected str"
            )
        return result


__all__ = ["CustomTemplateEngine", "load_hook"]
