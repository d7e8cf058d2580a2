"""Parse growing assistant text into a small document tree.

The parser is a pure function of ``(text, is_streaming)``: the same input
always produces an equal tree, so callers may re-parse the whole message on
every delta. Trees are immutable and hashable, which lets completed prefixes
be served from a cache while a code block is still streaming in.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import re
from typing import ClassVar, Union

DEFAULT_LANGUAGE = "plain"

FENCE = "```"
_COMPLETE_FENCE_RE = re.compile(r"```([a-zA-Z0-9]*)\n?([\s\S]*?)```")
_OPEN_FENCE_RE = re.compile(r"```([a-zA-Z0-9]*)\n?([\s\S]*)$")


@dataclass(frozen=True)
class TextRun:
    text: str


@dataclass(frozen=True)
class InlineCode:
    text: str


@dataclass(frozen=True)
class Strong:
    text: str


@dataclass(frozen=True)
class Emphasis:
    text: str


@dataclass(frozen=True)
class Link:
    """A hyperlink that opens in a new context and never sends a referrer."""

    text: str
    url: str

    target: ClassVar[str] = "_blank"
    rel: ClassVar[str] = "noopener noreferrer"


@dataclass(frozen=True)
class LineBreak:
    pass


Inline = Union[TextRun, InlineCode, Strong, Emphasis, Link, LineBreak]


@dataclass(frozen=True)
class Paragraph:
    """A run of prose between code blocks."""

    children: tuple[Inline, ...]


@dataclass(frozen=True)
class CodeBlock:
    """Fenced code. ``is_open`` marks a block whose closing fence has not arrived."""

    language: str
    code: str
    is_open: bool = False


Block = Union[Paragraph, CodeBlock]


@dataclass(frozen=True)
class Document:
    blocks: tuple[Block, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    @property
    def code_blocks(self) -> tuple[CodeBlock, ...]:
        return tuple(block for block in self.blocks if isinstance(block, CodeBlock))

    @property
    def open_block(self) -> CodeBlock | None:
        if self.blocks and isinstance(self.blocks[-1], CodeBlock):
            last = self.blocks[-1]
            return last if last.is_open else None
        return None


# Ordered by priority: when two patterns start at the same column the earlier
# entry wins.
_INLINE_PATTERNS: tuple[tuple[re.Pattern[str], type], ...] = (
    (re.compile(r"`([^`]+)`"), InlineCode),
    (re.compile(r"\*\*([^*]+)\*\*"), Strong),
    (re.compile(r"__([^_]+)__"), Strong),
    (re.compile(r"\*([^*]+)\*"), Emphasis),
    (re.compile(r"_([^_]+)_"), Emphasis),
    (re.compile(r"\[([^\]]+)\]\(([^)]+)\)"), Link),
)


def _parse_line(line: str) -> list[Inline]:
    nodes: list[Inline] = []
    cursor = 0
    while cursor < len(line):
        best: tuple[re.Match[str], type] | None = None
        for pattern, node_type in _INLINE_PATTERNS:
            match = pattern.search(line, cursor)
            if match is not None and (best is None or match.start() < best[0].start()):
                best = (match, node_type)
        if best is None:
            break
        match, node_type = best
        if match.start() > cursor:
            nodes.append(TextRun(line[cursor : match.start()]))
        if node_type is Link:
            nodes.append(Link(match.group(1), match.group(2)))
        else:
            nodes.append(node_type(match.group(1)))
        cursor = match.end()
    if cursor < len(line):
        nodes.append(TextRun(line[cursor:]))
    return nodes


def parse_inline(text: str) -> Paragraph:
    """Parse inline markdown one line at a time, joining lines with breaks."""
    children: list[Inline] = []
    lines = text.split("\n")
    for index, line in enumerate(lines):
        children.extend(_parse_line(line))
        if index < len(lines) - 1:
            children.append(LineBreak())
    return Paragraph(tuple(children))


@lru_cache(maxsize=256)
def _parse_complete(text: str) -> tuple[Block, ...]:
    blocks: list[Block] = []
    last_index = 0
    for match in _COMPLETE_FENCE_RE.finditer(text):
        if match.start() > last_index:
            blocks.append(parse_inline(text[last_index : match.start()]))
        blocks.append(
            CodeBlock(language=match.group(1) or DEFAULT_LANGUAGE, code=match.group(2))
        )
        last_index = match.end()
    if last_index < len(text):
        blocks.append(parse_inline(text[last_index:]))
    return tuple(blocks)


def find_open_fence(text: str) -> int | None:
    """Return the offset of a fence that has no closing marker, if any.

    Fences pair up left to right; an odd fence count leaves the last opener
    unmatched.
    """
    last_index = 0
    for match in _COMPLETE_FENCE_RE.finditer(text):
        last_index = match.end()
    position = text.find(FENCE, last_index)
    return position if position >= 0 else None


def parse_content(text: str, is_streaming: bool = False) -> Document:
    """Parse cumulative message ``text`` into a :class:`Document`."""
    if not text:
        return Document()
    if is_streaming:
        open_at = find_open_fence(text)
        if open_at is not None:
            match = _OPEN_FENCE_RE.match(text, open_at)
            if match is not None:
                live = CodeBlock(
                    language=match.group(1) or DEFAULT_LANGUAGE,
                    code=match.group(2),
                    is_open=True,
                )
                return Document(_parse_complete(text[:open_at]) + (live,))
    return Document(_parse_complete(text))


class IncrementalContentParser:
    """Re-parse a message as it grows, skipping work when nothing changed."""

    def __init__(self) -> None:
        self._last_key: tuple[str, bool] | None = None
        self._last_document = Document()

    def parse(self, text: str, is_streaming: bool = False) -> Document:
        key = (text, is_streaming)
        if key != self._last_key:
            self._last_document = parse_content(text, is_streaming)
            self._last_key = key
        return self._last_document
