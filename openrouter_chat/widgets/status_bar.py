"""Status bar widget for model, credential, and send-state telemetry."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.widgets import Label, Static


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        Model: openai/gpt-3.5-turbo  |  API key: set  |  Messages: 4  |  IDLE
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: auto;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar #status_state {
        color: $text-muted;
    }
    """

    def compose(self) -> ComposeResult:
        yield Label("Model: -", id="status_model")
        yield Label("|")
        yield Label("API key: missing", id="status_key")
        yield Label("|")
        yield Label("Messages: 0", id="status_messages")
        yield Label("|")
        yield Label("IDLE", id="status_state")

    def set_status(
        self,
        *,
        model: str,
        has_credential: bool,
        message_count: int,
        send_state: str,
    ) -> None:
        self.query_one("#status_model", Label).update(f"Model: {model}")
        self.query_one("#status_key", Label).update(
            "API key: set" if has_credential else "API key: missing (demo replies)"
        )
        self.query_one("#status_messages", Label).update(f"Messages: {message_count}")
        self.query_one("#status_state", Label).update(send_state)
