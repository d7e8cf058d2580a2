"""Top-level package for openrouter-chat-tui."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import OpenRouterChatApp
    from .config import ensure_config_dir, load_config
    from .content_parser import IncrementalContentParser, parse_content
    from .controller import ChatController
    from .exceptions import (
        ConfigValidationError,
        ConnectionFailed,
        EmptyStream,
        NoCredential,
        OpenRouterChatError,
        RequestRejected,
    )
    from .session_store import SessionStore
    from .stream_ingestor import StreamIngestor
    from .suggestions import SuggestionEngine

__all__ = [
    "ChatController",
    "ConfigValidationError",
    "ConnectionFailed",
    "EmptyStream",
    "IncrementalContentParser",
    "NoCredential",
    "OpenRouterChatApp",
    "OpenRouterChatError",
    "RequestRejected",
    "SessionStore",
    "StreamIngestor",
    "SuggestionEngine",
    "ensure_config_dir",
    "load_config",
    "parse_content",
]

_EXCEPTIONS = {
    "ConfigValidationError",
    "ConnectionFailed",
    "EmptyStream",
    "NoCredential",
    "OpenRouterChatError",
    "RequestRejected",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the core can be used without loading the UI."""
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in {"IncrementalContentParser", "parse_content"}:
        from . import content_parser

        return getattr(content_parser, name)
    if name == "ChatController":
        from .controller import ChatController

        return ChatController
    if name == "SessionStore":
        from .session_store import SessionStore

        return SessionStore
    if name == "StreamIngestor":
        from .stream_ingestor import StreamIngestor

        return StreamIngestor
    if name == "SuggestionEngine":
        from .suggestions import SuggestionEngine

        return SuggestionEngine
    if name == "OpenRouterChatApp":
        from .app import OpenRouterChatApp

        return OpenRouterChatApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
