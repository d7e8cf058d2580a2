"""Chat and message records plus their on-disk representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal
from uuid import uuid4

Role = Literal["user", "assistant", "system"]
VALID_ROLES: frozenset[str] = frozenset({"user", "assistant", "system"})

DEFAULT_CHAT_TITLE = "New Chat"
GREETING_TEXT = "Hello! I'm your AI assistant. How can I help you today?"
CLEARED_TEXT = "Chat cleared. How else can I help you?"
PENDING_TEXT = "Thinking..."


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now().astimezone()


@dataclass
class Message:
    """A single conversation turn.

    ``is_pending`` marks the transient placeholder shown while waiting for the
    first delta; pending messages are never written to disk.
    """

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    is_pending: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "date": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Message:
        role = str(payload.get("role", "")).strip().lower()
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown message role {role!r}.")
        message_id = payload.get("id")
        if not isinstance(message_id, str) or not message_id:
            raise ValueError("Message id must be a non-empty string.")
        content = payload.get("content", "")
        if not isinstance(content, str):
            raise ValueError("Message content must be a string.")
        return cls(
            id=message_id,
            role=role,  # type: ignore[arg-type]
            content=content,
            timestamp=_parse_datetime(payload.get("date")),
        )

    def as_turn(self) -> dict[str, str]:
        """Return the ``{role, content}`` pair sent to the completion API."""
        return {"role": self.role, "content": self.content}


@dataclass
class Chat:
    """A named conversation whose first message is always the system prompt."""

    title: str
    messages: list[Message]
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)

    def find_message(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    @property
    def user_messages(self) -> list[Message]:
        return [m for m in self.messages if m.role == "user"]

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def build_turns(self) -> list[dict[str, str]]:
        """Return the conversation as API turns, system message first."""
        turns = [m.as_turn() for m in self.messages if m.role == "system"][:1]
        turns.extend(
            m.as_turn()
            for m in self.messages
            if m.role != "system" and not m.is_pending
        )
        return turns

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages if not m.is_pending],
            "createdAt": self.created_at.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Chat:
        chat_id = payload.get("id")
        if not isinstance(chat_id, str) or not chat_id:
            raise ValueError("Chat id must be a non-empty string.")
        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list):
            raise ValueError("Chat messages must be a list.")
        title = payload.get("title")
        return cls(
            id=chat_id,
            title=title if isinstance(title, str) and title else DEFAULT_CHAT_TITLE,
            messages=[Message.from_dict(item) for item in raw_messages],
            created_at=_parse_datetime(payload.get("createdAt")),
            last_activity=_parse_datetime(payload.get("lastActivity")),
        )


def seed_messages(
    system_prompt: str, opening_text: str = GREETING_TEXT, when: datetime | None = None
) -> list[Message]:
    """Return the system message plus an assistant opener that start every chat."""
    stamp = when or utcnow()
    return [
        Message(role="system", content=system_prompt, timestamp=stamp),
        Message(role="assistant", content=opening_text, timestamp=stamp),
    ]


def _parse_datetime(value: Any) -> datetime:
    if not isinstance(value, str):
        raise ValueError("Timestamp must be an ISO-8601 string.")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_timestamp(when: datetime, now: datetime | None = None) -> str:
    """Render a sidebar label: ``Today at``, ``Yesterday at``, or a short date."""
    reference = (now or utcnow()).astimezone()
    local = when.astimezone(reference.tzinfo)
    clock = local.strftime("%H:%M")
    if local.date() == reference.date():
        return f"Today at {clock}"
    if local.date() == (reference - timedelta(days=1)).date():
        return f"Yesterday at {clock}"
    return f"{local.strftime('%b')} {local.day}, {clock}"
