"""Tests for the domain exception hierarchy."""

from __future__ import annotations

import unittest

from openrouter_chat.exceptions import (
    ConfigValidationError,
    ConnectionFailed,
    DecodeSkipped,
    EmptyStream,
    NoCredential,
    OpenRouterChatError,
    PersistenceError,
    RequestRejected,
    StorageCorrupt,
)


class ExceptionHierarchyTests(unittest.TestCase):
    def test_all_errors_share_base(self) -> None:
        for error_type in (
            ConfigValidationError,
            ConnectionFailed,
            DecodeSkipped,
            EmptyStream,
            NoCredential,
            PersistenceError,
            RequestRejected,
            StorageCorrupt,
        ):
            with self.subTest(error_type=error_type.__name__):
                self.assertTrue(issubclass(error_type, OpenRouterChatError))
                self.assertTrue(issubclass(error_type, RuntimeError))

    def test_request_rejected_carries_status_and_message(self) -> None:
        error = RequestRejected("Invalid model", status_code=400)
        self.assertEqual(str(error), "Invalid model")
        self.assertEqual(error.server_message, "Invalid model")
        self.assertEqual(error.status_code, 400)

    def test_decode_skipped_keeps_line(self) -> None:
        error = DecodeSkipped("data: {", reason="Expecting value")
        self.assertEqual(error.line, "data: {")
        self.assertIn("Expecting value", str(error))


if __name__ == "__main__":
    unittest.main()
