"""Input row containing the message field and send button."""

from __future__ import annotations

from textual.containers import Horizontal
from textual.widgets import Button, Input


class InputBox(Horizontal):
    """Message field plus a send button that is disabled while a reply is in flight."""

    def compose(self):  # type: ignore[override]
        yield Input(placeholder="Type your message here...", id="message_input")
        yield Button("Send", id="send_button", variant="success")

    def set_busy(self, busy: bool) -> None:
        self.query_one("#send_button", Button).disabled = busy

    def take_text(self) -> str:
        """Return the current text and clear the field."""
        field = self.query_one("#message_input", Input)
        text = field.value
        field.value = ""
        return text
