"""Single source of truth for chat sessions and the active-chat pointer."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from .events import (
    ACTIVE_CHANGED,
    CHATS_CHANGED,
    MESSAGE_APPENDED,
    MESSAGE_REMOVED,
    MESSAGE_UPDATED,
    EventBus,
)
from .exceptions import StorageCorrupt
from .models import (
    CLEARED_TEXT,
    DEFAULT_CHAT_TITLE,
    GREETING_TEXT,
    Chat,
    Message,
    seed_messages,
    utcnow,
)
from .persistence import PersistentStore

LOGGER = logging.getLogger(__name__)


class SessionStore:
    """Own the chat collection and mutate it one whole step at a time.

    Every mutation runs without suspending, updates the in-memory state,
    writes the full collection to the durable store, and then emits a bus
    event. Chats are kept in creation order; the active pointer always refers
    to an existing chat once :meth:`load` or :meth:`create_chat` has run.
    """

    def __init__(
        self,
        store: PersistentStore,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._bus = bus or EventBus()
        self._clock = clock
        self._chats: dict[str, Chat] = {}
        self._active_chat_id: str | None = None

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def chats(self) -> list[Chat]:
        """Return chats in creation order."""
        return list(self._chats.values())

    @property
    def active_chat_id(self) -> str | None:
        return self._active_chat_id

    @property
    def active_chat(self) -> Chat | None:
        if self._active_chat_id is None:
            return None
        return self._chats.get(self._active_chat_id)

    def get_chat(self, chat_id: str) -> Chat | None:
        return self._chats.get(chat_id)

    def load(self, system_prompt: str) -> None:
        """Restore chats from disk, falling back to a fresh chat when none load."""
        try:
            loaded = self._store.load_chats()
        except StorageCorrupt as exc:
            LOGGER.warning(
                "session.storage.corrupt",
                extra={"event": "session.storage.corrupt", "reason": str(exc)},
            )
            loaded = None

        self._chats = {chat.id: chat for chat in loaded or []}
        if not self._chats:
            self.create_chat(system_prompt)
            return
        self._active_chat_id = self.chats[-1].id
        self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
        self._bus.emit(ACTIVE_CHANGED, {"chat_id": self._active_chat_id})

    def create_chat(self, system_prompt: str) -> Chat:
        """Create a seeded chat, make it active, and persist."""
        now = self._clock()
        chat = Chat(
            title=DEFAULT_CHAT_TITLE,
            messages=seed_messages(system_prompt, GREETING_TEXT, now),
            created_at=now,
            last_activity=now,
        )
        self._chats[chat.id] = chat
        self._active_chat_id = chat.id
        self._persist()
        LOGGER.info(
            "session.chat.created",
            extra={"event": "session.chat.created", "chat_id": chat.id},
        )
        self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
        self._bus.emit(ACTIVE_CHANGED, {"chat_id": chat.id})
        return chat

    def select_chat(self, chat_id: str) -> bool:
        """Point the active pointer at ``chat_id``; unknown ids are ignored."""
        if chat_id not in self._chats:
            return False
        if chat_id != self._active_chat_id:
            self._active_chat_id = chat_id
            self._bus.emit(ACTIVE_CHANGED, {"chat_id": chat_id})
        return True

    def delete_chat(self, chat_id: str, system_prompt: str) -> bool:
        """Remove a chat; deleting the active one re-points to the newest survivor.

        When the last chat is deleted a fresh chat is created so the store is
        never left without an active chat.
        """
        if chat_id not in self._chats:
            return False
        del self._chats[chat_id]
        LOGGER.info(
            "session.chat.deleted",
            extra={"event": "session.chat.deleted", "chat_id": chat_id},
        )
        if chat_id != self._active_chat_id:
            self._persist()
            self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
            return True

        if not self._chats:
            self._active_chat_id = None
            self.create_chat(system_prompt)
            return True

        self._active_chat_id = self.chats[-1].id
        self._persist()
        self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
        self._bus.emit(ACTIVE_CHANGED, {"chat_id": self._active_chat_id})
        return True

    def append_message(self, chat_id: str, message: Message) -> bool:
        """Append ``message`` and bump the chat's last activity."""
        chat = self._chats.get(chat_id)
        if chat is None:
            return False
        chat.messages.append(message)
        chat.last_activity = self._clock()
        self._persist()
        self._bus.emit(
            MESSAGE_APPENDED, {"chat_id": chat_id, "message_id": message.id}
        )
        return True

    def update_message_content(
        self, chat_id: str, message_id: str, new_content: str
    ) -> bool:
        """Replace a message's content; missing chats or messages are a no-op.

        A stream may still be delivering deltas after its chat was cleared or
        deleted, so a miss here is expected and silent.
        """
        chat = self._chats.get(chat_id)
        message = chat.find_message(message_id) if chat is not None else None
        if message is None:
            LOGGER.debug(
                "session.message.update_missed",
                extra={
                    "event": "session.message.update_missed",
                    "chat_id": chat_id,
                    "message_id": message_id,
                },
            )
            return False
        message.content = new_content
        if not message.is_pending:
            self._persist()
        self._bus.emit(
            MESSAGE_UPDATED,
            {"chat_id": chat_id, "message_id": message_id, "content": new_content},
        )
        return True

    def remove_message(self, chat_id: str, message_id: str) -> bool:
        """Drop a single message; the system message at index 0 is kept."""
        chat = self._chats.get(chat_id)
        if chat is None:
            return False
        for index, message in enumerate(chat.messages):
            if message.id == message_id and not (index == 0 and message.role == "system"):
                del chat.messages[index]
                if not message.is_pending:
                    self._persist()
                self._bus.emit(
                    MESSAGE_REMOVED, {"chat_id": chat_id, "message_id": message_id}
                )
                return True
        return False

    def set_title(self, chat_id: str, title: str) -> bool:
        chat = self._chats.get(chat_id)
        if chat is None:
            return False
        chat.title = title
        self._persist()
        self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
        return True

    def clear_chat(self, chat_id: str, system_prompt: str) -> bool:
        """Reset a chat's history to a fresh system message and opener."""
        chat = self._chats.get(chat_id)
        if chat is None:
            return False
        now = self._clock()
        chat.messages = seed_messages(system_prompt, CLEARED_TEXT, now)
        chat.last_activity = now
        self._persist()
        self._bus.emit(CHATS_CHANGED, {"count": len(self._chats)})
        if chat_id == self._active_chat_id:
            self._bus.emit(ACTIVE_CHANGED, {"chat_id": chat_id})
        return True

    def _persist(self) -> None:
        self._store.save_chats(self.chats)
