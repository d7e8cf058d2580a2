"""Tests for the streaming completion client."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
import json
import unittest

import httpx

from openrouter_chat.exceptions import (
    ConnectionFailed,
    DecodeSkipped,
    EmptyStream,
    RequestRejected,
)
from openrouter_chat.stream_ingestor import (
    DONE,
    TITLE_INSTRUCTION,
    StreamDelta,
    StreamIngestor,
    parse_event_line,
    title_turns,
)

ENDPOINT = "https://openrouter.test/api/v1/chat/completions"


def _data(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


def _body(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


class _ChunkedStream(httpx.AsyncByteStream):
    """Deliver a body in arbitrary pieces, optionally failing afterwards."""

    def __init__(self, chunks: list[bytes], fail_with: Exception | None = None) -> None:
        self._chunks = chunks
        self._fail_with = fail_with

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk
        if self._fail_with is not None:
            raise self._fail_with


def _ingestor(handler: Callable[[httpx.Request], httpx.Response]) -> StreamIngestor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreamIngestor(ENDPOINT, "sk-test", "openai/gpt-3.5-turbo", client=client)


class ParseEventLineTests(unittest.TestCase):
    def test_delta_line(self) -> None:
        self.assertEqual(parse_event_line(_data("Hi")), StreamDelta("Hi"))

    def test_done_sentinel(self) -> None:
        self.assertIs(parse_event_line("data: [DONE]"), DONE)

    def test_other_prefixes_and_empty_content_are_ignored(self) -> None:
        self.assertIsNone(parse_event_line(": OPENROUTER PROCESSING"))
        self.assertIsNone(parse_event_line(""))
        self.assertIsNone(parse_event_line('data: {"choices": [{"delta": {}}]}'))
        self.assertIsNone(parse_event_line('data: {"choices": []}'))

    def test_malformed_json_raises_decode_skipped(self) -> None:
        with self.assertRaises(DecodeSkipped) as ctx:
            parse_event_line('data: {"choices": [')
        self.assertEqual(ctx.exception.line, 'data: {"choices": [')


class StreamIngestorTests(unittest.IsolatedAsyncioTestCase):
    async def _collect(self, ingestor: StreamIngestor) -> str:
        try:
            return await ingestor.collect([{"role": "user", "content": "hello"}])
        finally:
            await ingestor._client.aclose()

    async def test_streams_deltas_in_order(self) -> None:
        body = _body(_data("Hello"), _data(", "), _data("world"), "data: [DONE]")
        ingestor = _ingestor(lambda request: httpx.Response(200, content=body))
        self.assertEqual(await self._collect(ingestor), "Hello, world")

    async def test_result_does_not_depend_on_chunk_boundaries(self) -> None:
        body = _body(_data("alpha "), _data("beta "), _data("gamma"), "data: [DONE]")
        expected = "alpha beta gamma"
        for size in (1, 3, 7, 64, len(body)):
            chunks = [body[i : i + size] for i in range(0, len(body), size)]
            ingestor = _ingestor(
                lambda request, chunks=chunks: httpx.Response(
                    200, stream=_ChunkedStream(chunks)
                )
            )
            with self.subTest(chunk_size=size):
                self.assertEqual(await self._collect(ingestor), expected)

    async def test_malformed_line_is_skipped(self) -> None:
        body = _body(_data("a"), "data: {broken", _data("b"), "data: [DONE]")
        ingestor = _ingestor(lambda request: httpx.Response(200, content=body))
        with self.assertLogs("openrouter_chat.stream_ingestor", level="WARNING") as logs:
            result = await self._collect(ingestor)
        self.assertEqual(result, "ab")
        self.assertTrue(any("stream.line.skipped" in line for line in logs.output))

    async def test_stops_at_done_sentinel(self) -> None:
        body = _body(_data("kept"), "data: [DONE]", _data("ignored"))
        ingestor = _ingestor(lambda request: httpx.Response(200, content=body))
        self.assertEqual(await self._collect(ingestor), "kept")

    async def test_rejected_status_carries_server_message(self) -> None:
        ingestor = _ingestor(
            lambda request: httpx.Response(
                401, json={"error": {"message": "No auth credentials found"}}
            )
        )
        with self.assertRaises(RequestRejected) as ctx:
            await self._collect(ingestor)
        self.assertEqual(ctx.exception.server_message, "No auth credentials found")
        self.assertEqual(ctx.exception.status_code, 401)

    async def test_rejected_status_without_json_body(self) -> None:
        ingestor = _ingestor(lambda request: httpx.Response(502, content=b"<html>"))
        with self.assertRaises(RequestRejected) as ctx:
            await self._collect(ingestor)
        self.assertEqual(
            ctx.exception.server_message, "Failed to connect to OpenRouter API"
        )

    async def test_connect_error_maps_to_connection_failed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with self.assertRaises(ConnectionFailed):
            await self._collect(_ingestor(handler))

    async def test_mid_stream_transport_error(self) -> None:
        stream = _ChunkedStream([_body(_data("part"))], fail_with=httpx.ReadError("reset"))
        ingestor = _ingestor(lambda request: httpx.Response(200, stream=stream))
        received: list[str] = []
        with self.assertRaises(ConnectionFailed):
            try:
                async with ingestor.open_stream([{"role": "user", "content": "x"}]) as deltas:
                    async for delta in deltas:
                        received.append(delta.text)
            finally:
                await ingestor._client.aclose()
        self.assertEqual(received, ["part"])

    async def test_empty_body_raises_empty_stream(self) -> None:
        ingestor = _ingestor(lambda request: httpx.Response(200, content=b""))
        with self.assertRaises(EmptyStream):
            await self._collect(ingestor)

    async def test_comment_only_body_without_done_raises_empty_stream(self) -> None:
        body = _body(": OPENROUTER PROCESSING", "", ": OPENROUTER PROCESSING")
        ingestor = _ingestor(lambda request: httpx.Response(200, content=body))
        with self.assertRaises(EmptyStream):
            await self._collect(ingestor)

    async def test_done_without_deltas_is_a_normal_end(self) -> None:
        body = _body(": OPENROUTER PROCESSING", "data: [DONE]")
        ingestor = _ingestor(lambda request: httpx.Response(200, content=body))
        self.assertEqual(await self._collect(ingestor), "")

    async def test_undecodable_body_maps_to_connection_failed(self) -> None:
        ingestor = _ingestor(
            lambda request: httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not gzip data"
            )
        )
        with self.assertRaises(ConnectionFailed) as ctx:
            await self._collect(ingestor)
        self.assertIsInstance(ctx.exception.__cause__, httpx.DecodingError)

    async def test_request_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=_body("data: [DONE]"))

        ingestor = _ingestor(handler)
        turns = [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        await ingestor.collect(turns)
        await ingestor.collect(title_turns("hi"), title_mode=True)
        await ingestor._client.aclose()

        chat_request, title_request = seen
        self.assertEqual(chat_request.headers["Authorization"], "Bearer sk-test")
        self.assertEqual(chat_request.headers["X-Title"], "AI Chat App")
        self.assertIn("HTTP-Referer", chat_request.headers)
        payload = json.loads(chat_request.content)
        self.assertEqual(payload["messages"], turns)
        self.assertTrue(payload["stream"])
        self.assertEqual(payload["temperature"], 0.7)
        self.assertNotIn("max_tokens", payload)

        title_payload = json.loads(title_request.content)
        self.assertEqual(title_payload["max_tokens"], 20)
        self.assertEqual(title_payload["messages"][0]["content"], TITLE_INSTRUCTION)


if __name__ == "__main__":
    unittest.main()
