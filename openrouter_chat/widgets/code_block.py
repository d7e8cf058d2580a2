"""Code block widget with a copy-to-clipboard button."""

from __future__ import annotations

from typing import Any

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Label, Static

from ..content_parser import CodeBlock as ParsedCodeBlock
from ..render import render_code


class CodeBlock(Vertical):
    """Render one fenced block; a block still being streamed shows as live."""

    DEFAULT_CSS = """
    CodeBlock {
        height: auto;
        margin: 1 0 0 0;
        border: round $primary-darken-2;
        background: $boost;
    }
    CodeBlock.live {
        border: dashed $accent;
    }
    CodeBlock > #code-header {
        height: 1;
        background: $panel-lighten-1;
    }
    CodeBlock > #code-header > #lang-label {
        width: 1fr;
        color: $text-muted;
    }
    CodeBlock #copy-btn {
        min-width: 8;
        height: 1;
        border: none;
    }
    CodeBlock #copy-btn:disabled {
        color: $text-muted;
    }
    CodeBlock > #code-body {
        height: auto;
        padding: 0 1;
    }
    """

    class CopyRequested(Message):
        """Posted when the user clicks the copy button."""

        def __init__(self, code: str, language: str) -> None:
            super().__init__()
            self.code = code
            self.language = language

    def __init__(self, block: ParsedCodeBlock, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.block = block
        self.set_class(block.is_open, "live")

    @staticmethod
    def _label_for(block: ParsedCodeBlock) -> str:
        return f"{block.language} (streaming)" if block.is_open else block.language

    def compose(self) -> ComposeResult:
        with Horizontal(id="code-header"):
            yield Label(self._label_for(self.block), id="lang-label")
            yield Button("copy", id="copy-btn", disabled=self.block.is_open)
        yield Static(render_code(self.block), id="code-body")

    def update_block(self, block: ParsedCodeBlock) -> None:
        """Show ``block`` in place; a live block keeps its widget as it grows."""
        if block == self.block:
            return
        self.block = block
        self.set_class(block.is_open, "live")
        if not self.is_mounted:
            return
        self.query_one("#lang-label", Label).update(self._label_for(block))
        self.query_one("#copy-btn", Button).disabled = block.is_open
        self.query_one("#code-body", Static).update(render_code(block))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "copy-btn":
            event.stop()
            self.post_message(self.CopyRequested(self.block.code, self.block.language))
