"""Static markup rendering and formatting collaborators."""

from __future__ import annotations

from typing import Any, Tuple

from bs4 import BeautifulSoup
from bs4.formatter import HTMLFormatter
from markupsafe import escape

_MAX_CALL_DEPTH = 16


def render_to_static_markup(node: Any) -> Tuple[str, str]:
    """Render ``node`` to ``(markup, styles)``.

    Callables are invoked (repeatedly, for factories returning factories) until
    a value remains. Objects implementing ``__html__`` are trusted markup; any
    other value is escaped. An optional ``__html_styles__()`` method supplies
    style markup collected while rendering; it is inserted as-is.
    """
    value = node
    for _ in range(_MAX_CALL_DEPTH):
        if not callable(value) or hasattr(value, "__html__"):
            break
        value = value()
    else:
        raise TypeError("Component factory nesting is too deep")

    if value is None:
        raise TypeError("Component rendered to None")

    markup = str(escape(value))
    styles = ""
    styles_hook = getattr(value, "__html_styles__", None)
    if callable(styles_hook):
        styles = str(styles_hook() or "")
    return markup, styles


def format_markup(markup: str, indent: int = 2) -> str:
    """Pretty-print an HTML fragment; the result carries no ``<html>`` wrapper."""
    if not markup.strip():
        return markup
    soup = BeautifulSoup(markup, "html.parser")
    return soup.prettify(formatter=HTMLFormatter(indent=indent)).rstrip("\n")


__all__ = ["format_markup", "render_to_static_markup"]
