"""Unit tests for individual widget classes."""

from __future__ import annotations

import unittest

from openrouter_chat.content_parser import CodeBlock as ParsedCodeBlock
from openrouter_chat.models import Chat, Message, seed_messages

try:
    from textual.app import App, ComposeResult
    from textual.widgets import Button, Input, Label, OptionList

    from openrouter_chat.widgets.code_block import CodeBlock
    from openrouter_chat.widgets.conversation import ConversationView
    from openrouter_chat.widgets.input_box import InputBox
    from openrouter_chat.widgets.message import MessageBubble
    from openrouter_chat.widgets.sidebar import ChatSidebar, chat_label
    from openrouter_chat.widgets.status_bar import StatusBar
    from openrouter_chat.widgets.suggestions import SuggestionBar
except ModuleNotFoundError:
    App = None  # type: ignore[assignment,misc]
    CodeBlock = None  # type: ignore[assignment,misc]
    MessageBubble = None  # type: ignore[assignment,misc]


@unittest.skipIf(MessageBubble is None, "textual is not installed")
class MessageBubbleTests(unittest.TestCase):
    """Validate MessageBubble state without mounting."""

    def test_role_class_and_prefix(self) -> None:
        user = MessageBubble(content="hi", role="user")
        assistant = MessageBubble(content="hi", role="assistant")
        self.assertIn("role-user", user.classes)
        self.assertEqual(user.role_prefix, "You")
        self.assertEqual(assistant.role_prefix, "Assistant")

    def test_pending_class(self) -> None:
        bubble = MessageBubble(content="Thinking...", role="assistant", is_pending=True)
        self.assertIn("pending", bubble.classes)

    def test_set_content_before_mount_updates_document(self) -> None:
        bubble = MessageBubble(content="", role="assistant", is_streaming=True)
        bubble.set_content("```py\nx", is_streaming=True)
        self.assertEqual(bubble.message_content, "```py\nx")
        self.assertTrue(bubble.document.blocks[-1].is_open)  # type: ignore[union-attr]
        bubble.set_content("```py\nx```", is_streaming=False)
        self.assertFalse(bubble.document.blocks[-1].is_open)  # type: ignore[union-attr]


@unittest.skipIf(App is None, "textual is not installed")
class MountedWidgetTests(unittest.IsolatedAsyncioTestCase):
    """Mount widgets inside a minimal Textual app."""

    def _app(self, *widgets: object) -> App[None]:
        class _TestApp(App[None]):
            def compose(self) -> ComposeResult:
                yield from widgets  # type: ignore[misc]

        return _TestApp()

    async def test_streaming_code_block_grows_in_place(self) -> None:
        bubble = MessageBubble(
            content="Intro\n```py\nprint(", role="assistant", is_streaming=True
        )
        app = self._app(bubble)
        async with app.run_test() as pilot:
            await pilot.pause()
            (live,) = bubble.query(CodeBlock)
            self.assertIn("live", live.classes)
            self.assertTrue(live.query_one("#copy-btn", Button).disabled)

            bubble.set_content("Intro\n```py\nprint(1)", is_streaming=True)
            await pilot.pause()
            self.assertIs(bubble.query_one(CodeBlock), live)
            self.assertEqual(live.block.code, "print(1)")

            bubble.set_content("Intro\n```py\nprint(1)\n```", is_streaming=False)
            await pilot.pause()
            block = bubble.query_one(CodeBlock)
            self.assertNotIn("live", block.classes)
            self.assertFalse(block.query_one("#copy-btn", Button).disabled)

    async def test_code_block_copy_posts_message(self) -> None:
        received: list[CodeBlock.CopyRequested] = []

        class _TestApp(App[None]):
            def compose(self) -> ComposeResult:
                yield CodeBlock(ParsedCodeBlock("sh", "ls -la\n"))

            def on_code_block_copy_requested(
                self, event: CodeBlock.CopyRequested
            ) -> None:
                received.append(event)

        app = _TestApp()
        async with app.run_test() as pilot:
            await pilot.click("#copy-btn")
            await pilot.pause()
        self.assertEqual([(e.code, e.language) for e in received], [("ls -la\n", "sh")])

    async def test_conversation_shows_chat_without_system_prompt(self) -> None:
        chat = Chat(title="t", messages=seed_messages("sys"))
        view = ConversationView(id="conversation")
        app = self._app(view)
        async with app.run_test() as pilot:
            view.show_chat(chat)
            await pilot.pause()
            self.assertEqual(len(view.bubbles), 1)

            reply = Message(role="assistant", content="")
            view.add_message(reply, is_streaming=True)
            await pilot.pause()
            view.update_message(reply.id, "streamed", is_streaming=True)
            await pilot.pause()
            self.assertEqual(view.bubble_for(reply.id).message_content, "streamed")  # type: ignore[union-attr]

            view.remove_message(reply.id)
            await pilot.pause()
            self.assertIsNone(view.bubble_for(reply.id))

    async def test_input_box_take_text_and_busy(self) -> None:
        box = InputBox(id="ib")
        app = self._app(box)
        async with app.run_test() as pilot:
            await pilot.pause()
            field = app.query_one("#message_input", Input)
            field.value = "hello"
            self.assertEqual(box.take_text(), "hello")
            self.assertEqual(field.value, "")
            box.set_busy(True)
            self.assertTrue(app.query_one("#send_button", Button).disabled)

    async def test_suggestion_bar_posts_choice(self) -> None:
        chosen: list[str] = []

        class _TestApp(App[None]):
            def compose(self) -> ComposeResult:
                yield SuggestionBar(["one", "two", "three"])

            def on_suggestion_bar_suggestion_chosen(
                self, event: SuggestionBar.SuggestionChosen
            ) -> None:
                chosen.append(event.text)

        app = _TestApp()
        async with app.run_test() as pilot:
            bar = app.query_one(SuggestionBar)
            await bar.set_suggestions(["alpha", "beta", "gamma"])
            await pilot.pause()
            buttons = list(bar.query(Button))
            self.assertEqual([str(b.label) for b in buttons], ["alpha", "beta", "gamma"])
            buttons[1].press()
            await pilot.pause()
            await bar.set_suggestions([])
            self.assertFalse(bar.display)
        self.assertEqual(chosen, ["beta"])

    async def test_sidebar_lists_chats(self) -> None:
        first = Chat(title="First", messages=seed_messages("s"))
        second = Chat(title="Second", messages=seed_messages("s"))
        sidebar = ChatSidebar()
        app = self._app(sidebar)
        async with app.run_test() as pilot:
            sidebar.set_chats([first, second], second.id)
            await pilot.pause()
            options = app.query_one("#chat_list", OptionList)
            self.assertEqual(options.option_count, 2)
            self.assertEqual(options.highlighted, 1)

    async def test_status_bar_labels(self) -> None:
        bar = StatusBar()
        app = self._app(bar)
        async with app.run_test() as pilot:
            await pilot.pause()
            bar.set_status(
                model="openai/gpt-3.5-turbo",
                has_credential=False,
                message_count=4,
                send_state="IDLE",
            )
            await pilot.pause()
            key_label = app.query_one("#status_key", Label)
            self.assertIn("missing", str(key_label.render()))


@unittest.skipIf(App is None, "textual is not installed")
class ChatLabelTests(unittest.TestCase):
    def test_label_has_title_and_activity(self) -> None:
        chat = Chat(title="Sorting", messages=seed_messages("s"))
        now = chat.last_activity.astimezone()
        label = chat_label(chat, active=True, now=now)
        self.assertTrue(label.plain.startswith("Sorting\nToday at "))


if __name__ == "__main__":
    unittest.main()
