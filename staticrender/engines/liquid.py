"""Liquid host-template engine."""

from __future__ import annotations

import re
from typing import List

from .base import TemplateEngine

_OUTPUT_PATTERN = re.compile(r"\{\{-?\s*(.+?)\s*-?\}\}", re.DOTALL)
_TAG_PATTERN = re.compile(r"\{%-?\s*(.+?)\s*-?%\}", re.DOTALL)


def is_liquid_template(content: str) -> bool:
    """Return True when ``content`` contains Liquid output or tag delimiters."""
    return bool(_OUTPUT_PATTERN.search(content) or _TAG_PATTERN.search(content))


class LiquidTemplateEngine(TemplateEngine):
    """Merges into Liquid templates using the standard ``{{ }}`` and ``{% %}`` delimiters."""

    name = "liquid"
    file_extensions = (".liquid",)

    def extract_variables(self, template: str) -> List[str]:
        """Return distinct output expressions with filters stripped, in first-seen order."""
        variables: List[str] = []
        for match in _OUTPUT_PATTERN.finditer(template):
            variable = match.group(1).split("|", 1)[0].strip()
            if variable and variable not in variables:
                variables.append(variable)
        return variables

    def extract_tags(self, template: str) -> List[str]:
        """Return distinct tag names (``if``, ``for``, ``endif`` ...) in first-seen order."""
        tags: List[str] = []
        for match in _TAG_PATTERN.finditer(template):
            words = match.group(1).split(None, 1)
            if words and words[0] not in tags:
                tags.append(words[0])
        return tags


__all__ = ["LiquidTemplateEngine", "is_liquid_template"]
