"""Orchestrate sending, streaming, fallback replies, and chat titles."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging
import random
from typing import Any, Protocol

from .events import SUGGESTIONS_CHANGED
from .exceptions import (
    ConnectionFailed,
    NoCredential,
    OpenRouterChatError,
    RequestRejected,
)
from .logging_utils import bound_log_context
from .models import DEFAULT_CHAT_TITLE, PENDING_TEXT, Chat, Message
from .persistence import Settings
from .session_store import SessionStore
from .state import SendState, StateManager
from .stream_ingestor import StreamDelta, title_turns
from .suggestions import STARTER_SUGGESTIONS, SuggestionEngine

LOGGER = logging.getLogger(__name__)

SNIPPET_LENGTH = 30
TITLE_MAX_LENGTH = 60

FALLBACK_TEMPLATES: tuple[str, ...] = (
    "It looks like you haven't set up your API key yet. To get started, please:\n"
    "\n"
    "1. Open Settings\n"
    "2. Enter your OpenRouter API key\n"
    "3. Save your settings\n"
    "\n"
    "You can get an API key at openrouter.ai/keys. Once you've added your key, "
    'I\'ll be able to help you with: "{snippet}"',
    'To help you with "{snippet}", I\'ll need you to configure your API key first. '
    "Open Settings and enter your OpenRouter API key. You can get one at "
    "openrouter.ai/keys",
    'Before I can answer your question about "{snippet}", please set up your API '
    "key in Settings. Visit openrouter.ai/keys to get your key, then enter it in "
    "the Settings panel.",
)

ERROR_TEMPLATE = (
    "I encountered an error: {error}. Please try again or check your API settings."
)

# Failures that occur before any reply text exists route to the canned reply.
_FALLBACK_ERRORS = (NoCredential, RequestRejected, ConnectionFailed)


class DeltaSource(Protocol):
    """The part of :class:`StreamIngestor` the controller relies on."""

    def open_stream(
        self, turns: Sequence[dict[str, str]], *, title_mode: bool = False
    ) -> Any: ...

    async def collect(
        self, turns: Sequence[dict[str, str]], *, title_mode: bool = False
    ) -> str: ...


def truncate(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """Return the first ``limit`` characters, with ``...`` when text was cut."""
    return text[:limit] + ("..." if len(text) > limit else "")


def sanitize_title(raw: str, limit: int = TITLE_MAX_LENGTH) -> str:
    cleaned = " ".join(raw.replace('"', "").replace("'", "").split())
    return truncate(cleaned, limit) if cleaned else ""


@dataclass
class _SendContext:
    chat_id: str
    pending_id: str
    response_id: str | None = None


class ChatController:
    """Drive one send at a time per chat through the session store.

    The controller owns the send state machine (IDLE -> SENDING -> STREAMING
    or FALLBACK -> SETTLED), the follow-up suggestions, and title generation.
    ``choice`` and ``sleep`` are injectable so fallback replies can be pinned
    and revealed instantly in tests.
    """

    def __init__(
        self,
        sessions: SessionStore,
        settings_provider: Callable[[], Settings],
        ingestor_factory: Callable[[Settings], DeltaSource],
        suggestion_engine: SuggestionEngine | None = None,
        *,
        choice: Callable[[Sequence[str]], str] = random.choice,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        fallback_chunk_chars: int = 5,
        fallback_interval_seconds: float = 0.03,
        fallback_initial_delay_seconds: float = 0.5,
    ) -> None:
        self.sessions = sessions
        self._settings_provider = settings_provider
        self._ingestor_factory = ingestor_factory
        self._suggestion_engine = suggestion_engine or SuggestionEngine()
        self._choice = choice
        self._sleep = sleep
        self.fallback_chunk_chars = max(1, fallback_chunk_chars)
        self.fallback_interval_seconds = fallback_interval_seconds
        self.fallback_initial_delay_seconds = fallback_initial_delay_seconds
        self._states: dict[str, StateManager] = {}
        self._suggestions: list[str] = list(STARTER_SUGGESTIONS)

    @property
    def suggestions(self) -> list[str]:
        return list(self._suggestions)

    def _set_suggestions(self, suggestions: Sequence[str]) -> None:
        self._suggestions = list(suggestions)
        self.sessions.bus.emit(SUGGESTIONS_CHANGED, {"suggestions": self.suggestions})

    def state_for(self, chat_id: str) -> StateManager:
        return self._states.setdefault(chat_id, StateManager())

    def is_busy(self, chat_id: str) -> bool:
        return self.state_for(chat_id).state in {
            SendState.SENDING,
            SendState.STREAMING,
            SendState.FALLBACK,
        }

    def new_chat(self) -> Chat:
        chat = self.sessions.create_chat(self._settings_provider().system_message)
        self._set_suggestions(STARTER_SUGGESTIONS)
        return chat

    def select_chat(self, chat_id: str) -> bool:
        return self.sessions.select_chat(chat_id)

    def clear_chat(self, chat_id: str | None = None) -> bool:
        target = chat_id or self.sessions.active_chat_id
        if target is None:
            return False
        cleared = self.sessions.clear_chat(
            target, self._settings_provider().system_message
        )
        if cleared:
            self._set_suggestions(STARTER_SUGGESTIONS)
        return cleared

    def delete_chat(self, chat_id: str) -> bool:
        deleted = self.sessions.delete_chat(
            chat_id, self._settings_provider().system_message
        )
        if deleted and not self.is_busy(chat_id):
            self._states.pop(chat_id, None)
        return deleted

    async def _transition(
        self, state: StateManager, chat_id: str, new_state: SendState
    ) -> None:
        await state.transition_to(new_state)
        LOGGER.info(
            "controller.state.transition",
            extra={
                "event": "controller.state.transition",
                "chat_id": chat_id,
                "to_state": new_state.value,
            },
        )

    async def send_message(self, text: str, chat_id: str | None = None) -> bool:
        """Send ``text`` to the active (or given) chat and stream the reply.

        Returns False without side effects when the text is blank, the chat is
        unknown, or a send is already in flight for that chat.
        """
        user_text = text.strip()
        target_id = chat_id or self.sessions.active_chat_id
        chat = self.sessions.get_chat(target_id) if target_id else None
        if not user_text or chat is None:
            return False

        state = self.state_for(chat.id)
        if not await state.try_begin_send():
            LOGGER.info(
                "controller.send.busy",
                extra={"event": "controller.send.busy", "chat_id": chat.id},
            )
            return False

        with bound_log_context(chat_id=chat.id):
            LOGGER.info(
                "controller.state.transition",
                extra={
                    "event": "controller.state.transition",
                    "chat_id": chat.id,
                    "to_state": SendState.SENDING.value,
                },
            )
            settings = self._settings_provider()
            pending = Message(role="assistant", content=PENDING_TEXT, is_pending=True)
            context = _SendContext(chat_id=chat.id, pending_id=pending.id)

            final_text: str | None = None
            try:
                self.sessions.append_message(
                    chat.id, Message(role="user", content=user_text)
                )
                turns = chat.build_turns()
                self.sessions.append_message(chat.id, pending)
                self._set_suggestions([])
                final_text = await self._produce_reply(
                    context, state, settings, turns, user_text
                )
            except Exception as exc:
                LOGGER.warning(
                    "controller.send.failed",
                    extra={
                        "event": "controller.send.failed",
                        "chat_id": chat.id,
                        "error_type": exc.__class__.__name__,
                    },
                )
                self._report_error(context, exc)
            finally:
                try:
                    if final_text is None:
                        self._discard_placeholders(context)
                finally:
                    await self._transition(state, chat.id, SendState.SETTLED)

            if final_text is not None:
                self._set_suggestions(self._suggestion_engine.suggest(final_text))

            settled_chat = self.sessions.get_chat(chat.id)
            if (
                settled_chat is not None
                and settled_chat.title == DEFAULT_CHAT_TITLE
                and settled_chat.user_messages
            ):
                await self.generate_title(
                    chat.id, settled_chat.user_messages[0].content, settings
                )
        return True

    async def _produce_reply(
        self,
        context: _SendContext,
        state: StateManager,
        settings: Settings,
        turns: list[dict[str, str]],
        user_text: str,
    ) -> str:
        try:
            if not settings.has_credential:
                raise NoCredential("No API key configured")
            ingestor = self._ingestor_factory(settings)
            return await self._stream_reply(context, state, ingestor, turns)
        except _FALLBACK_ERRORS as exc:
            if context.response_id is not None:
                raise
            LOGGER.info(
                "controller.fallback",
                extra={
                    "event": "controller.fallback",
                    "chat_id": context.chat_id,
                    "reason": exc.__class__.__name__,
                },
            )
            return await self._reveal_fallback(context, state, user_text)

    def _start_response(self, context: _SendContext) -> Message:
        self.sessions.remove_message(context.chat_id, context.pending_id)
        response = Message(role="assistant", content="")
        self.sessions.append_message(context.chat_id, response)
        context.response_id = response.id
        return response

    async def _stream_reply(
        self,
        context: _SendContext,
        state: StateManager,
        ingestor: DeltaSource,
        turns: list[dict[str, str]],
    ) -> str:
        async with ingestor.open_stream(turns) as deltas:
            response = self._start_response(context)
            await self._transition(state, context.chat_id, SendState.STREAMING)
            response_text = ""
            delta: StreamDelta
            async for delta in deltas:
                response_text += delta.text
                self.sessions.update_message_content(
                    context.chat_id, response.id, response_text
                )
        return response_text

    async def _reveal_fallback(
        self, context: _SendContext, state: StateManager, user_text: str
    ) -> str:
        await self._transition(state, context.chat_id, SendState.FALLBACK)
        await self._sleep(self.fallback_initial_delay_seconds)
        reply = self._choice(FALLBACK_TEMPLATES).format(snippet=truncate(user_text))
        response = self._start_response(context)

        revealed = 0
        while revealed < len(reply):
            await self._sleep(self.fallback_interval_seconds)
            revealed = min(revealed + self.fallback_chunk_chars, len(reply))
            self.sessions.update_message_content(
                context.chat_id, response.id, reply[:revealed]
            )
        return reply

    def _discard_placeholders(self, context: _SendContext) -> None:
        """Remove the pending message and an empty reply message, if present."""
        self.sessions.remove_message(context.chat_id, context.pending_id)
        if context.response_id is None:
            return
        chat = self.sessions.get_chat(context.chat_id)
        response = chat.find_message(context.response_id) if chat else None
        if response is not None and not response.content:
            self.sessions.remove_message(context.chat_id, context.response_id)

    def _report_error(self, context: _SendContext, exc: Exception) -> None:
        self._discard_placeholders(context)
        self.sessions.append_message(
            context.chat_id,
            Message(role="assistant", content=ERROR_TEMPLATE.format(error=exc)),
        )

    async def generate_title(
        self, chat_id: str, first_message: str, settings: Settings | None = None
    ) -> str:
        """Ask the model for a short title, falling back to the message itself."""
        active_settings = settings or self._settings_provider()
        title = ""
        if active_settings.has_credential:
            try:
                raw = await self._ingestor_factory(active_settings).collect(
                    title_turns(first_message), title_mode=True
                )
                title = sanitize_title(raw)
            except OpenRouterChatError as exc:
                LOGGER.warning(
                    "controller.title.failed",
                    extra={
                        "event": "controller.title.failed",
                        "chat_id": chat_id,
                        "error_type": exc.__class__.__name__,
                    },
                )
        if not title:
            title = truncate(first_message)
        self.sessions.set_title(chat_id, title)
        return title
