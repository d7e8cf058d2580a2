"""Row of clickable follow-up prompt suggestions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from textual.containers import Horizontal
from textual.message import Message
from textual.widgets import Button


class SuggestionBar(Horizontal):
    DEFAULT_CSS = """
    SuggestionBar {
        height: auto;
        padding: 0 1;
    }
    SuggestionBar > Button {
        margin-right: 1;
        min-width: 10;
    }
    """

    class SuggestionChosen(Message):
        """Posted when the user clicks a suggestion."""

        def __init__(self, text: str) -> None:
            super().__init__()
            self.text = text

    def __init__(self, suggestions: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.suggestions: list[str] = list(suggestions)

    def compose(self):  # type: ignore[override]
        for index, text in enumerate(self.suggestions):
            yield Button(text, name=str(index), classes="suggestion")

    async def set_suggestions(self, suggestions: Sequence[str]) -> None:
        self.suggestions = list(suggestions)
        await self.remove_children()
        await self.mount_all(
            Button(text, name=str(index), classes="suggestion")
            for index, text in enumerate(self.suggestions)
        )
        self.display = bool(self.suggestions)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if not event.button.has_class("suggestion"):
            return
        event.stop()
        index = int(event.button.name or -1)
        if 0 <= index < len(self.suggestions):
            self.post_message(self.SuggestionChosen(self.suggestions[index]))
