"""Turn parsed documents into rich renderables for the terminal."""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.style import Style
from rich.syntax import Syntax
from rich.text import Text

from .content_parser import (
    DEFAULT_LANGUAGE,
    CodeBlock,
    Document,
    Emphasis,
    InlineCode,
    LineBreak,
    Link,
    Paragraph,
    Strong,
    TextRun,
)

CODE_THEME = "monokai"
INLINE_CODE_STYLE = Style(color="bright_cyan", bgcolor="grey19")
LINK_COLOR = "bright_blue"


def render_paragraph(paragraph: Paragraph) -> Text:
    text = Text()
    for node in paragraph.children:
        if isinstance(node, TextRun):
            text.append(node.text)
        elif isinstance(node, LineBreak):
            text.append("\n")
        elif isinstance(node, InlineCode):
            text.append(node.text, style=INLINE_CODE_STYLE)
        elif isinstance(node, Strong):
            text.append(node.text, style="bold")
        elif isinstance(node, Emphasis):
            text.append(node.text, style="italic")
        elif isinstance(node, Link):
            text.append(
                node.text, style=Style(color=LINK_COLOR, underline=True, link=node.url)
            )
    return text


def render_code(block: CodeBlock) -> Syntax:
    lexer = "text" if block.language == DEFAULT_LANGUAGE else block.language
    return Syntax(
        block.code,
        lexer,
        theme=CODE_THEME,
        line_numbers=False,
        word_wrap=True,
    )


def render_block(block: Paragraph | CodeBlock) -> RenderableType:
    if isinstance(block, CodeBlock):
        return render_code(block)
    return render_paragraph(block)


def render_document(document: Document) -> Group:
    """Render every block of ``document`` in order."""
    return Group(*(render_block(block) for block in document.blocks))
