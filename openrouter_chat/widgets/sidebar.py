"""Sidebar listing every chat with its last-activity label."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from rich.text import Text
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Button, OptionList
from textual.widgets.option_list import Option

from ..models import Chat, format_timestamp


def chat_label(chat: Chat, active: bool, now: datetime | None = None) -> Text:
    label = Text(chat.title, style="bold" if active else "")
    label.append(f"\n{format_timestamp(chat.last_activity, now)}", style="dim")
    return label


class ChatSidebar(Vertical):
    """Chat list in collection order with a new-chat button above it."""

    DEFAULT_CSS = """
    ChatSidebar {
        width: 32;
        border-right: solid $panel;
        background: $surface;
    }
    ChatSidebar > #new_chat_button {
        width: 100%;
        margin-bottom: 1;
    }
    ChatSidebar > #chat_list {
        height: 1fr;
    }
    """

    class ChatSelected(Message):
        def __init__(self, chat_id: str) -> None:
            super().__init__()
            self.chat_id = chat_id

    class NewChatRequested(Message):
        """Posted when the new-chat button is clicked."""

    def compose(self):  # type: ignore[override]
        yield Button("+ New Chat", id="new_chat_button", variant="primary")
        yield OptionList(id="chat_list")

    def set_chats(
        self,
        chats: Sequence[Chat],
        active_chat_id: str | None,
        now: datetime | None = None,
    ) -> None:
        options = self.query_one("#chat_list", OptionList)
        options.clear_options()
        options.add_options(
            [
                Option(chat_label(chat, chat.id == active_chat_id, now), id=chat.id)
                for chat in chats
            ]
        )
        for index, chat in enumerate(chats):
            if chat.id == active_chat_id:
                options.highlighted = index
                break

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "new_chat_button":
            event.stop()
            self.post_message(self.NewChatRequested())

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        if event.option.id:
            self.post_message(self.ChatSelected(event.option.id))
