"""Scrollable conversation view widget."""

from __future__ import annotations

from typing import Any

from textual.containers import VerticalScroll

from ..models import Chat, Message, format_timestamp
from .message import MessageBubble


class ConversationView(VerticalScroll):
    """Host one bubble per visible message of the active chat."""

    def __init__(self, show_timestamps: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.show_timestamps = show_timestamps
        self.chat_id: str | None = None
        self._bubbles: dict[str, MessageBubble] = {}

    def bubble_for(self, message_id: str) -> MessageBubble | None:
        return self._bubbles.get(message_id)

    @property
    def bubbles(self) -> list[MessageBubble]:
        return list(self._bubbles.values())

    def _timestamp(self, message: Message) -> str:
        return format_timestamp(message.timestamp) if self.show_timestamps else ""

    def show_chat(self, chat: Chat, streaming_id: str | None = None) -> None:
        """Replace all bubbles with the messages of ``chat``."""
        stale = list(self.children)
        self._bubbles.clear()
        self.chat_id = chat.id
        for child in stale:
            child.remove()
        for message in chat.messages:
            if message.role != "system":
                self.add_message(message, is_streaming=message.id == streaming_id)
        self.scroll_end(animate=False)

    def add_message(self, message: Message, is_streaming: bool = False) -> MessageBubble:
        """Create and mount a bubble without waiting for it to be mounted."""
        bubble = MessageBubble(
            content=message.content,
            role=message.role,
            timestamp=self._timestamp(message),
            message_id=message.id,
            is_pending=message.is_pending,
            is_streaming=is_streaming,
        )
        bubble.add_class(f"message-{message.role}")
        self._bubbles[message.id] = bubble
        self.mount(bubble)
        self.scroll_end(animate=False)
        return bubble

    def update_message(
        self, message_id: str, content: str, is_streaming: bool = False
    ) -> bool:
        bubble = self._bubbles.get(message_id)
        if bubble is None:
            return False
        bubble.set_content(content, is_streaming=is_streaming)
        self.scroll_end(animate=False)
        return True

    def remove_message(self, message_id: str) -> bool:
        bubble = self._bubbles.pop(message_id, None)
        if bubble is None:
            return False
        bubble.remove()
        return True

    def finalize_all(self) -> None:
        for bubble in self._bubbles.values():
            if bubble.is_streaming:
                bubble.finalize()
