"""Tests for converting parsed documents into rich renderables."""

from __future__ import annotations

import unittest

from rich.console import Console, Group
from rich.syntax import Syntax
from rich.text import Text

from openrouter_chat.content_parser import CodeBlock, parse_content, parse_inline
from openrouter_chat.render import (
    INLINE_CODE_STYLE,
    render_code,
    render_document,
    render_paragraph,
)


def _plain(renderable: object) -> str:
    console = Console(width=80, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


class RenderTests(unittest.TestCase):
    def test_paragraph_styles(self) -> None:
        text = render_paragraph(parse_inline("a **b** *c* `d`"))
        self.assertIsInstance(text, Text)
        self.assertEqual(text.plain, "a b c d")
        styles = {str(span.style) for span in text.spans}
        self.assertIn("bold", styles)
        self.assertIn("italic", styles)
        self.assertIn(str(INLINE_CODE_STYLE), styles)

    def test_link_style_carries_url(self) -> None:
        text = render_paragraph(parse_inline("[site](https://example.com)"))
        self.assertEqual(text.plain, "site")
        self.assertEqual(text.spans[0].style.link, "https://example.com")  # type: ignore[union-attr]

    def test_line_breaks_preserved(self) -> None:
        self.assertEqual(render_paragraph(parse_inline("x\ny")).plain, "x\ny")

    def test_code_block_uses_language_lexer(self) -> None:
        syntax = render_code(CodeBlock("python", "print(1)\n"))
        self.assertIsInstance(syntax, Syntax)
        self.assertIn("print(1)", _plain(syntax))

    def test_plain_language_renders(self) -> None:
        self.assertIn("x = 1", _plain(render_code(CodeBlock("plain", "x = 1"))))

    def test_document_renders_all_blocks_in_order(self) -> None:
        document = parse_content("Before\n```sh\nls\n```\nAfter")
        group = render_document(document)
        self.assertIsInstance(group, Group)
        output = _plain(group)
        self.assertLess(output.index("Before"), output.index("ls"))
        self.assertLess(output.index("ls"), output.index("After"))


if __name__ == "__main__":
    unittest.main()
