"""Widget exports for openrouter_chat UI."""

from .code_block import CodeBlock
from .conversation import ConversationView
from .input_box import InputBox
from .message import MessageBubble
from .sidebar import ChatSidebar
from .status_bar import StatusBar
from .suggestions import SuggestionBar

__all__ = [
    "ChatSidebar",
    "CodeBlock",
    "ConversationView",
    "InputBox",
    "MessageBubble",
    "StatusBar",
    "SuggestionBar",
]
