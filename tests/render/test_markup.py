"""Tests for the markup rendering collaborators."""

from __future__ import annotations

import pytest
from markupsafe import Markup

from staticrender.render.markup import format_markup, render_to_static_markup


class _StyledCard:
    def __html__(self) -> str:
        return '<div class="card">Card</div>'

    def __html_styles__(self) -> str:
        return "<style>.card{color:red}</style>"


def test_markup_objects_are_trusted() -> None:
    assert render_to_static_markup(Markup("<h1>Hi</h1>")) == ("<h1>Hi</h1>", "")


def test_plain_strings_are_escaped() -> None:
    markup, _ = render_to_static_markup("<script>alert(1)</script>")

    assert markup == "&lt;script&gt;alert(1)&lt;/script&gt;"


def test_callables_are_invoked_until_a_value_remains() -> None:
    def page() -> object:
        return lambda: Markup("<p>nested</p>")

    assert render_to_static_markup(page) == ("<p>nested</p>", "")


def test_styles_side_channel() -> None:
    markup, styles = render_to_static_markup(_StyledCard())

    assert markup == '<div class="card">Card</div>'
    assert styles == "<style>.card{color:red}</style>"


def test_none_is_not_renderable() -> None:
    with pytest.raises(TypeError):
        render_to_static_markup(lambda: None)


def test_format_markup_indents_fragments() -> None:
    formatted = format_markup("<div><p>hi</p></div>", indent=4)
    lines = formatted.splitlines()

    assert lines[0] == "<div>"
    assert "    <p>" in lines
    assert lines[-1] == "</div>"
    assert "<html>" not in formatted
