"""PHP host-template engine.

PHP code in the template is left untouched; only the root element's inner
content is replaced.
"""

from __future__ import annotations

import re
from typing import List

from .base import TemplateEngine

_PHP_OPEN_TAG = re.compile(r"<\?(?:php\b|=)?", re.IGNORECASE)
_PHP_VARIABLE = re.compile(r"\$([a-zA-Z_][a-zA-Z0-9_]*)")


def is_php_template(content: str) -> bool:
    """Return True when ``content`` contains a PHP open tag (``<?php``, ``<?=`` or ``<?``)."""
    for match in _PHP_OPEN_TAG.finditer(content):
        # An XML declaration is not PHP.
        if content.startswith("<?xml", match.start()):
            continue
        return True
    return False


class PhpTemplateEngine(TemplateEngine):
    name = "php"
    file_extensions = (".php",)

    def extract_variables(self, template: str) -> List[str]:
        """Return distinct ``$variable`` names in first-seen order."""
        variables: List[str] = []
        for match in _PHP_VARIABLE.finditer(template):
            name = match.group(1)
            if name not in variables:
                variables.append(name)
        return variables


__all__ = ["PhpTemplateEngine", "is_php_template"]
