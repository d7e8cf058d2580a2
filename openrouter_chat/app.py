"""Main Textual application for chatting through OpenRouter."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import sys
from typing import Any

import httpx
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Footer, Header, Input

from .config import load_config
from .controller import ChatController
from .events import (
    ACTIVE_CHANGED,
    CHATS_CHANGED,
    CODE_COPIED,
    MESSAGE_APPENDED,
    MESSAGE_REMOVED,
    MESSAGE_UPDATED,
    SUGGESTIONS_CHANGED,
    Event,
    EventBus,
)
from .exceptions import PersistenceError
from .logging_utils import configure_logging
from .models import PENDING_TEXT
from .persistence import PersistentStore, Settings, SettingsStore
from .screens import ConfirmDeleteScreen, SettingsScreen
from .session_store import SessionStore
from .state import SendState
from .stream_ingestor import StreamIngestor
from .suggestions import SuggestionEngine
from .task_manager import TaskManager, send_task_name
from .widgets.code_block import CodeBlock
from .widgets.conversation import ConversationView
from .widgets.input_box import InputBox
from .widgets.sidebar import ChatSidebar
from .widgets.status_bar import StatusBar
from .widgets.suggestions import SuggestionBar

LOGGER = logging.getLogger(__name__)

TEXTUAL_THEMES = {"dark": "textual-dark", "light": "textual-light"}
_PENDING_BASE = PENDING_TEXT.rstrip(".")


def thinking_frames() -> tuple[str, ...]:
    """Placeholder text with zero to three trailing dots."""
    return tuple(_PENDING_BASE + "." * count for count in range(4))


class OpenRouterChatApp(App[None]):
    """Multi-chat terminal client streaming replies from OpenRouter."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        height: 1fr;
    }

    #main-column {
        width: 1fr;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #message_input {
        width: 1fr;
    }

    #send_button {
        margin-left: 1;
        min-width: 10;
    }

    #status_bar {
        height: auto;
        padding: 0 1;
        border-top: solid $panel;
        background: $surface;
    }

    MessageBubble {
        width: 85%;
        margin: 1 0;
        padding: 1 2;
        border: round $panel;
    }

    .message-user {
        background: $primary 30%;
    }

    .message-assistant {
        background: $surface;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "new_chat": "New Chat",
        "clear_chat": "Clear",
        "delete_chat": "Delete",
        "open_settings": "Settings",
        "toggle_theme": "Theme",
        "copy_last_message": "Copy Last",
        "interrupt_stream": "Interrupt",
        "quit": "Quit",
    }

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or load_config()
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )

        openrouter_cfg = self.config["openrouter"]
        ui_cfg = self.config["ui"]
        store = PersistentStore(Path(self.config["persistence"]["directory"]).expanduser())
        self.settings_store = SettingsStore(
            store,
            defaults=Settings(
                api_key="",
                model=str(openrouter_cfg["model"]),
                system_message=str(openrouter_cfg["system_message"]),
                theme=str(ui_cfg["theme"]),
            ),
        )
        self.settings = self.settings_store.load()
        self.bus = EventBus()
        self.sessions = SessionStore(store, bus=self.bus)
        self._http = http_client or httpx.AsyncClient(
            timeout=float(openrouter_cfg["timeout"])
        )
        self.controller = ChatController(
            self.sessions,
            settings_provider=lambda: self.settings,
            ingestor_factory=self._make_ingestor,
            suggestion_engine=SuggestionEngine(),
            fallback_chunk_chars=int(ui_cfg["fallback_chunk_chars"]),
            fallback_interval_seconds=float(ui_cfg["fallback_interval_seconds"]),
            fallback_initial_delay_seconds=float(
                ui_cfg["fallback_initial_delay_seconds"]
            ),
        )
        self._task_manager = TaskManager()
        self._thinking_interval = float(ui_cfg["thinking_interval_seconds"])
        self._binding_specs = self._binding_specs_from_config(self.config)

        self._w_conversation: ConversationView | None = None
        self._w_sidebar: ChatSidebar | None = None
        self._w_input: InputBox | None = None
        self._w_status: StatusBar | None = None
        self._w_suggestions: SuggestionBar | None = None
        super().__init__()

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(
                    Binding(
                        key=binding_key.strip(),
                        action=action_name,
                        description=description,
                        show=True,
                    )
                )
        return bindings

    def _make_ingestor(self, settings: Settings) -> StreamIngestor:
        openrouter_cfg = self.config["openrouter"]
        return StreamIngestor(
            str(openrouter_cfg["endpoint"]),
            settings.api_key,
            settings.model,
            temperature=float(openrouter_cfg["temperature"]),
            title_max_tokens=int(openrouter_cfg["title_max_tokens"]),
            referer=str(openrouter_cfg["referer"]),
            client_title=str(openrouter_cfg["client_title"]),
            client=self._http,
        )

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="app-root"):
            yield ChatSidebar(id="sidebar")
            with Vertical(id="main-column"):
                yield ConversationView(
                    show_timestamps=bool(self.config["ui"]["show_timestamps"]),
                    id="conversation",
                )
                yield SuggestionBar(self.controller.suggestions, id="suggestions")
                yield InputBox()
                yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        self.title = str(self.config["app"]["title"])
        for binding in self._binding_specs:
            self.bind(
                binding.key,
                binding.action,
                description=binding.description,
                show=binding.show,
            )
        self._apply_theme()

        self._w_conversation = self.query_one(ConversationView)
        self._w_sidebar = self.query_one(ChatSidebar)
        self._w_input = self.query_one(InputBox)
        self._w_status = self.query_one(StatusBar)
        self._w_suggestions = self.query_one(SuggestionBar)

        self.bus.subscribe(CHATS_CHANGED, self._on_chats_changed)
        self.bus.subscribe(ACTIVE_CHANGED, self._on_active_changed)
        self.bus.subscribe(MESSAGE_APPENDED, self._on_message_appended)
        self.bus.subscribe(MESSAGE_UPDATED, self._on_message_updated)
        self.bus.subscribe(MESSAGE_REMOVED, self._on_message_removed)
        self.bus.subscribe(SUGGESTIONS_CHANGED, self._on_suggestions_changed)
        self.bus.subscribe(CODE_COPIED, self._on_code_copied)

        self.sessions.load(self.settings.system_message)
        self.query_one("#message_input", Input).focus()

    def _apply_theme(self) -> None:
        self.theme = TEXTUAL_THEMES.get(self.settings.theme, "textual-dark")

    def _update_status_bar(self) -> None:
        chat = self.sessions.active_chat
        if self._w_status is None or chat is None:
            return
        self._w_status.set_status(
            model=self.settings.model,
            has_credential=self.settings.has_credential,
            message_count=sum(1 for m in chat.messages if m.role != "system"),
            send_state=self.controller.state_for(chat.id).state.value,
        )

    def _refresh_input_state(self) -> None:
        chat_id = self.sessions.active_chat_id
        if self._w_input is not None and chat_id is not None:
            self._w_input.set_busy(self.controller.is_busy(chat_id))

    def _is_active(self, event: Event) -> bool:
        return event.data.get("chat_id") == self.sessions.active_chat_id

    def _on_chats_changed(self, _event: Event) -> None:
        if self._w_sidebar is not None:
            self._w_sidebar.set_chats(self.sessions.chats, self.sessions.active_chat_id)

    def _on_active_changed(self, _event: Event) -> None:
        chat = self.sessions.active_chat
        if chat is None or self._w_conversation is None:
            return
        self._on_chats_changed(_event)
        streaming_id = None
        if self.controller.state_for(chat.id).state == SendState.STREAMING:
            last = chat.last_message
            streaming_id = last.id if last is not None else None
        self._w_conversation.show_chat(chat, streaming_id=streaming_id)
        self._refresh_input_state()
        self._update_status_bar()

    def _on_message_appended(self, event: Event) -> None:
        chat = self.sessions.get_chat(event.data["chat_id"])
        message = chat.find_message(event.data["message_id"]) if chat else None
        if message is None or not self._is_active(event) or self._w_conversation is None:
            return
        self._w_conversation.add_message(message)
        if message.is_pending:
            self._task_manager.spawn(
                self._animate_thinking(message.id), name=f"thinking:{message.id}"
            )
        self._update_status_bar()

    def _on_message_updated(self, event: Event) -> None:
        if not self._is_active(event) or self._w_conversation is None:
            return
        self._w_conversation.update_message(
            event.data["message_id"],
            event.data["content"],
            is_streaming=self.controller.is_busy(event.data["chat_id"]),
        )

    def _on_message_removed(self, event: Event) -> None:
        task = self._task_manager.get(f"thinking:{event.data['message_id']}")
        if task is not None:
            task.cancel()
        if self._is_active(event) and self._w_conversation is not None:
            self._w_conversation.remove_message(event.data["message_id"])
            self._update_status_bar()

    async def _on_suggestions_changed(self, event: Event) -> None:
        if self._w_suggestions is not None:
            await self._w_suggestions.set_suggestions(event.data["suggestions"])

    def _on_code_copied(self, _event: Event) -> None:
        self.notify("Code copied to clipboard")

    async def _animate_thinking(self, message_id: str) -> None:
        frames = thinking_frames()
        index = 0
        while True:
            await asyncio.sleep(self._thinking_interval)
            index += 1
            bubble = (
                self._w_conversation.bubble_for(message_id)
                if self._w_conversation is not None
                else None
            )
            if bubble is not None:
                bubble.show_placeholder(frames[index % len(frames)])

    async def _submit(self, text: str) -> None:
        chat_id = self.sessions.active_chat_id
        if chat_id is None or not text.strip():
            return
        if self.controller.is_busy(chat_id):
            self.notify("Please wait for the current reply to finish.", severity="warning")
            return
        if self._w_input is not None:
            self._w_input.set_busy(True)
        self._task_manager.spawn(
            self._run_send(chat_id, text), name=send_task_name(chat_id)
        )

    async def _run_send(self, chat_id: str, text: str) -> None:
        try:
            await self.controller.send_message(text, chat_id)
        except PersistenceError as exc:
            self.notify(f"Unable to save chats: {exc}", severity="error")
        finally:
            if chat_id == self.sessions.active_chat_id and self._w_conversation:
                self._w_conversation.finalize_all()
            self._refresh_input_state()
            self._update_status_bar()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "message_input" and self._w_input is not None:
            await self._submit(self._w_input.take_text())

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send_button" and self._w_input is not None:
            await self._submit(self._w_input.take_text())

    async def on_suggestion_bar_suggestion_chosen(
        self, event: SuggestionBar.SuggestionChosen
    ) -> None:
        await self._submit(event.text)

    def on_chat_sidebar_chat_selected(self, event: ChatSidebar.ChatSelected) -> None:
        self.controller.select_chat(event.chat_id)

    def on_chat_sidebar_new_chat_requested(
        self, _event: ChatSidebar.NewChatRequested
    ) -> None:
        self.action_new_chat()

    def on_code_block_copy_requested(self, event: CodeBlock.CopyRequested) -> None:
        event.stop()
        self.copy_to_clipboard(event.code)
        self.bus.emit(CODE_COPIED, {"language": event.language, "length": len(event.code)})

    def action_new_chat(self) -> None:
        self.controller.new_chat()

    async def _cancel_send(self, chat_id: str) -> bool:
        return await self._task_manager.cancel(send_task_name(chat_id))

    async def action_clear_chat(self) -> None:
        chat_id = self.sessions.active_chat_id
        if chat_id is None:
            return
        await self._cancel_send(chat_id)
        if self.controller.clear_chat(chat_id):
            self.notify("Chat history cleared")

    async def action_delete_chat(self) -> None:
        chat = self.sessions.active_chat
        if chat is None:
            return
        chat_id = chat.id

        async def _on_confirm(confirmed: bool | None) -> None:
            if not confirmed:
                return
            await self._cancel_send(chat_id)
            if self.controller.delete_chat(chat_id):
                self.notify("Chat deleted")

        await self.push_screen(ConfirmDeleteScreen(chat.title), _on_confirm)

    async def action_open_settings(self) -> None:
        def _on_dismiss(result: Settings | None) -> None:
            if result is None:
                return
            self.settings = result
            try:
                self.settings_store.save(result)
            except PersistenceError as exc:
                self.notify(f"Unable to save settings: {exc}", severity="error")
                return
            self._update_status_bar()
            self.notify("Settings saved successfully")

        await self.push_screen(
            SettingsScreen(self.settings, self.config["openrouter"]["models"]),
            _on_dismiss,
        )

    def action_toggle_theme(self) -> None:
        new_theme = "light" if self.settings.theme == "dark" else "dark"
        self.settings.theme = new_theme
        try:
            self.settings_store.save_theme(new_theme)
        except PersistenceError as exc:
            LOGGER.warning(
                "app.theme.save_failed",
                extra={"event": "app.theme.save_failed", "reason": str(exc)},
            )
        self._apply_theme()

    def action_copy_last_message(self) -> None:
        chat = self.sessions.active_chat
        if chat is None:
            return
        for message in reversed(chat.messages):
            if message.role == "assistant" and not message.is_pending and message.content:
                self.copy_to_clipboard(message.content)
                self.notify("Copied latest assistant message.")
                return
        self.notify("No assistant message available to copy.", severity="warning")

    async def action_interrupt_stream(self) -> None:
        chat_id = self.sessions.active_chat_id
        if chat_id is None or not await self._cancel_send(chat_id):
            self.notify("No response to interrupt.")
            return
        self.notify("Response interrupted")

    async def action_quit(self) -> None:
        self.exit()

    async def on_unmount(self) -> None:
        """Cancel background work and release the shared HTTP client."""
        await self._task_manager.cancel_all()
        await self._http.aclose()
