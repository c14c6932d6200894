"""Plain HTML template engine."""

from __future__ import annotations

from .base import TemplateEngine


class HtmlTemplateEngine(TemplateEngine):
    name = "html"
    file_extensions = (".html", ".htm")


__all__ = ["HtmlTemplateEngine"]
