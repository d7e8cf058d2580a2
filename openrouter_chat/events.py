"""Event bus for decoupled component communication.

Usage:
    bus = EventBus()

    def on_message_updated(event):
        print(event.data["message_id"])

    bus.subscribe(MESSAGE_UPDATED, on_message_updated)
    bus.emit(MESSAGE_UPDATED, {"chat_id": "...", "message_id": "..."})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import inspect
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)

CHATS_CHANGED = "session.chats_changed"
ACTIVE_CHANGED = "session.active_changed"
MESSAGE_APPENDED = "session.message_appended"
MESSAGE_UPDATED = "session.message_updated"
MESSAGE_REMOVED = "session.message_removed"
SUGGESTIONS_CHANGED = "suggestions.changed"
CODE_COPIED = "code.copied"


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Publish/subscribe hub passed by reference to the components that need it.

    ``emit`` delivers synchronously so that a store mutation and its
    notification happen in the same uninterrupted step; coroutine handlers are
    scheduled on the running loop.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable[[Event], Any]]] = {}
        self._pending: set[asyncio.Task[Any]] = set()

    def subscribe(self, event_name: str, handler: Callable[[Event], Any]) -> None:
        """Subscribe to an event.

        Args:
            event_name: Event to listen for (e.g., "session.message_updated")
            handler: Function called with the :class:`Event` when it fires
        """
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def emit(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Deliver an event to all subscribers without suspending."""
        event = Event(name=event_name, data=data, source=source)
        for handler in list(self._subscribers.get(event_name, [])):
            try:
                result = handler(event)
            except Exception as exc:
                LOGGER.error("Event handler failed for %s: %s", event_name, exc)
                continue
            if inspect.isawaitable(result):
                self._schedule(event_name, result)

    def _schedule(self, event_name: str, awaitable: Any) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except Exception as exc:
                LOGGER.error("Event handler failed for %s: %s", event_name, exc)

        task = asyncio.get_running_loop().create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
