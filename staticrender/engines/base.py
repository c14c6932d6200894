"""Base classes for template-merge engines."""

from __future__ import annotations

import re
from abc import ABC
from dataclasses import dataclass
from typing import Tuple

_TAG_PATTERN = re.compile(r"<(/?)([a-zA-Z][\w:-]*)\b[^>]*?(/?)>")


class InsertionPointNotFound(LookupError):
    """Raised when a template has no element carrying the root element id."""

    def __init__(self, root_element_id: str) -> None:
        self.root_element_id = root_element_id
        super().__init__(f'No element with id="{root_element_id}" found in template')


class TemplateMergeError(RuntimeError):
    """Raised when content cannot be merged into a template."""


@dataclass(frozen=True)
class MergeContext:
    template: str
    content: str
    styles: str
    root_element_id: str


def _root_element_pattern(root_element_id: str) -> re.Pattern[str]:
    return re.compile(
        r"<(?P<tag>[a-zA-Z][\w:-]*)\b[^>]*?(?<![\w-])[iI][dD]\s*=\s*([\"'])"
        + re.escape(root_element_id)
        + r"\2[^>]*>"
    )


def find_root_element(template: str, root_element_id: str) -> Tuple[int, int]:
    """Return the ``(start, end)`` span of the root element's inner content.

    Nested elements with the same tag name are balanced so the whole subtree is
    replaced. Raises :class:`InsertionPointNotFound` when no element matches and
    :class:`TemplateMergeError` when the element is never closed.
    """
    match = _root_element_pattern(root_element_id).search(template)
    if match is None:
        raise InsertionPointNotFound(root_element_id)
    if match.group(0).rstrip().endswith("/>"):
        raise TemplateMergeError(
            f'Element with id="{root_element_id}" is self-closing and cannot hold content'
        )

    tag = match.group("tag").lower()
    inner_start = match.end()
    depth = 1
    for tag_match in _TAG_PATTERN.finditer(template, inner_start):
        if tag_match.group(2).lower() != tag or tag_match.group(3):
            continue
        if tag_match.group(1):
            depth -= 1
            if depth == 0:
                return inner_start, tag_match.start()
        else:
            depth += 1
    raise TemplateMergeError(f'Element with id="{root_element_id}" is not closed')


def replace_root_element(template: str, root_element_id: str, replacement: str) -> str:
    start, end = find_root_element(template, root_element_id)
    return template[:start] + replacement + template[end:]


class TemplateEngine(ABC):
    """Contract for engines that merge rendered markup into a host template.

    Subclasses set :attr:`name` and :attr:`file_extensions`. The default
    :meth:`merge` swaps the inner content of the root element, which is what
    every built-in engine does; engines override it to add host-language
    handling.
    """

    name: str = ""
    file_extensions: Tuple[str, ...] = ()

    def supports(self, extension: str) -> bool:
        """Return True when templates with ``extension`` belong to this engine."""
        normalised = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
        return normalised in self.file_extensions

    def merge(self, context: MergeContext) -> str:
        self.validate(context)
        return replace_root_element(
            context.template,
            context.root_element_id,
            context.styles + context.content,
        )

    def validate(self, context: MergeContext) -> None:
        if not context.template.strip():
            raise TemplateMergeError("Template is empty")
        if not context.content:
            raise TemplateMergeError("Rendered content is empty")
        if not context.root_element_id:
            raise TemplateMergeError("Root element id is empty")


__all__ = [
    "InsertionPointNotFound",
    "MergeContext",
    "TemplateEngine",
    "TemplateMergeError",
    "find_root_element",
    "replace_root_element",
]
