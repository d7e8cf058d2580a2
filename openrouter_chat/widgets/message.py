"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widget import Widget
from textual.widgets import Static

from ..content_parser import (
    CodeBlock as ParsedCodeBlock,
    Document,
    IncrementalContentParser,
    Paragraph,
)
from ..render import render_paragraph
from .code_block import CodeBlock

Block = Paragraph | ParsedCodeBlock


class MessageBubble(Vertical):
    """Render a single chat message as a stack of paragraph and code widgets.

    Content updates are coalesced: :meth:`set_content` only records the
    latest text, and the widget tree is reconciled once after the next
    refresh. Reconciliation reuses the widget at each position whose kind
    matches the new block, so only the tail that actually changed is
    re-rendered while a reply streams in.
    """

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
    }
    MessageBubble > #header-block {
        color: $text-muted;
    }
    MessageBubble > .paragraph {
        height: auto;
    }
    MessageBubble.pending > #placeholder {
        color: $text-muted;
        text-style: italic;
    }
    """

    def __init__(
        self,
        content: str,
        role: str,
        timestamp: str = "",
        message_id: str = "",
        is_pending: bool = False,
        is_streaming: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.message_content = content
        self.role = role
        self.timestamp = timestamp
        self.message_id = message_id
        self.is_pending = is_pending
        self.is_streaming = is_streaming
        self.add_class(f"role-{role}")
        self.set_class(is_pending, "pending")
        self._parser = IncrementalContentParser()
        self._rendered: list[Block] = []
        self._block_widgets: list[Widget] = []
        self._flush_scheduled = False

    @property
    def role_prefix(self) -> str:
        return "You" if self.role == "user" else "Assistant"

    @property
    def document(self) -> Document:
        return self._parser.parse(self.message_content, self.is_streaming)

    def _header_text(self) -> Text:
        header = Text(self.role_prefix, style="bold")
        if self.timestamp:
            header.append(f"  {self.timestamp}", style="dim")
        return header

    def compose(self) -> ComposeResult:
        yield Static(self._header_text(), id="header-block")
        if self.is_pending:
            yield Static(self.message_content, id="placeholder")

    def on_mount(self) -> None:
        if not self.is_pending:
            self._reconcile()

    def show_placeholder(self, text: str) -> None:
        """Update the waiting indicator of a pending message."""
        if self.is_pending and self.is_mounted:
            self.query_one("#placeholder", Static).update(text)

    def set_content(self, content: str, is_streaming: bool = False) -> None:
        self.message_content = content
        self.is_streaming = is_streaming
        if self._flush_scheduled or not self.is_mounted:
            return
        self._flush_scheduled = True
        self.call_after_refresh(self._flush)

    def finalize(self) -> None:
        """Re-render without the streaming flag once the reply is complete."""
        self.set_content(self.message_content, is_streaming=False)

    def _flush(self) -> None:
        self._flush_scheduled = False
        self._reconcile()

    def _reconcile(self) -> None:
        blocks = list(self.document.blocks)
        for index, block in enumerate(blocks):
            if index < len(self._rendered) and self._rendered[index] == block:
                continue
            existing = (
                self._block_widgets[index] if index < len(self._block_widgets) else None
            )
            if isinstance(block, ParsedCodeBlock) and isinstance(existing, CodeBlock):
                existing.update_block(block)
            elif isinstance(block, Paragraph) and isinstance(existing, Static):
                existing.update(render_paragraph(block))
            else:
                replacement = self._build_widget(block)
                if existing is None:
                    self._block_widgets.append(replacement)
                    self.mount(replacement)
                else:
                    self._block_widgets[index] = replacement
                    self.mount(replacement, after=existing)
                    existing.remove()

        for stale in self._block_widgets[len(blocks) :]:
            stale.remove()
        del self._block_widgets[len(blocks) :]
        self._rendered = blocks

    @staticmethod
    def _build_widget(block: Block) -> Widget:
        if isinstance(block, ParsedCodeBlock):
            return CodeBlock(block)
        return Static(render_paragraph(block), classes="paragraph")
