"""Modal screens for settings and destructive confirmations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static

from .persistence import Settings


class SettingsScreen(ModalScreen[Settings | None]):
    """Edit the API key, model and system message; dismisses with new settings."""

    CSS = """
    SettingsScreen {
        align: center middle;
    }

    #settings-dialog {
        width: 72;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #settings-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #settings-dialog Label {
        padding-top: 1;
    }

    #settings-help {
        color: $text-muted;
    }

    #settings-actions {
        height: 3;
        align: right middle;
        margin-top: 1;
    }

    #settings-actions Button {
        margin-left: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Close", show=False)]

    def __init__(self, settings: Settings, models: Sequence[dict[str, Any]]) -> None:
        super().__init__()
        self._settings = settings
        self._models = list(models)

    def _model_options(self) -> list[tuple[str, str]]:
        options = [(str(m["name"]), str(m["id"])) for m in self._models]
        if self._settings.model not in {value for _, value in options}:
            options.insert(0, (self._settings.model, self._settings.model))
        return options

    def compose(self) -> ComposeResult:
        with Container(id="settings-dialog"):
            yield Static("Settings", id="settings-title")
            yield Label("OpenRouter API key")
            yield Input(
                value=self._settings.api_key,
                password=True,
                placeholder="sk-or-...",
                id="settings-api-key",
            )
            yield Static("Get a key at openrouter.ai/keys", id="settings-help")
            yield Label("Model")
            yield Select(
                self._model_options(),
                value=self._settings.model,
                allow_blank=False,
                id="settings-model",
            )
            yield Label("System message")
            yield Input(value=self._settings.system_message, id="settings-system")
            with Horizontal(id="settings-actions"):
                yield Button("Cancel", id="settings-cancel")
                yield Button("Save", id="settings-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#settings-api-key", Input).focus()

    def collect(self) -> Settings:
        model = self.query_one("#settings-model", Select).value
        return replace(
            self._settings,
            api_key=self.query_one("#settings-api-key", Input).value.strip(),
            model=model if isinstance(model, str) else self._settings.model,
            system_message=self.query_one("#settings-system", Input).value.strip(),
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "settings-save":
            self.dismiss(self.collect())
        elif event.button.id == "settings-cancel":
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ConfirmDeleteScreen(ModalScreen[bool]):
    """Ask before a chat and its history are removed."""

    CSS = """
    ConfirmDeleteScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 56;
        height: auto;
        padding: 1 2;
        border: round $error;
        background: $surface;
    }

    #confirm-actions {
        height: 3;
        align: right middle;
        margin-top: 1;
    }

    #confirm-actions Button {
        margin-left: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Close", show=False)]

    def __init__(self, chat_title: str) -> None:
        super().__init__()
        self._chat_title = chat_title

    def compose(self) -> ComposeResult:
        with Container(id="confirm-dialog"):
            yield Static(
                f'Delete "{self._chat_title}"? This cannot be undone.',
                id="confirm-body",
            )
            with Horizontal(id="confirm-actions"):
                yield Button("Cancel", id="confirm-cancel")
                yield Button("Delete", id="confirm-delete", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "confirm-delete")

    def action_cancel(self) -> None:
        self.dismiss(False)
