"""Domain exception hierarchy for the OpenRouter chat application."""

from __future__ import annotations


class OpenRouterChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class RequestRejected(OpenRouterChatError):
    """Raised when the completion API answers with a non-success status."""

    def __init__(self, server_message: str, status_code: int | None = None) -> None:
        super().__init__(server_message)
        self.server_message = server_message
        self.status_code = status_code


class ConnectionFailed(OpenRouterChatError):
    """Raised when the completion API cannot be reached or the transport drops."""


class EmptyStream(OpenRouterChatError):
    """Raised when a streaming response carries no readable body."""


class DecodeSkipped(OpenRouterChatError):
    """Raised for a single malformed protocol line; never fatal to a stream."""

    def __init__(self, line: str, reason: str = "") -> None:
        super().__init__(f"Skipped malformed stream line: {reason or line!r}")
        self.line = line
        self.reason = reason


class NoCredential(OpenRouterChatError):
    """Raised when no API key is configured for the completion API."""


class StorageCorrupt(OpenRouterChatError):
    """Raised when the persisted chat collection cannot be decoded."""


class PersistenceError(OpenRouterChatError):
    """Raised when the durable store cannot be written."""


class ConfigValidationError(OpenRouterChatError):
    """Raised when configuration cannot be validated safely."""
