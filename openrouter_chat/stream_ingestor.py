"""Streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
import json
import logging
from typing import Any

import httpx

from .exceptions import ConnectionFailed, DecodeSkipped, EmptyStream, RequestRejected

LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

TITLE_INSTRUCTION = (
    "Generate a short, descriptive title (3-5 words) for a conversation that "
    "starts with the following message. Only respond with the title, nothing else."
)


@dataclass(frozen=True)
class StreamDelta:
    """One increment of generated text, applied in arrival order."""

    text: str


def title_turns(first_message: str) -> list[dict[str, str]]:
    """Return the conversation used to ask the model for a chat title."""
    return [
        {"role": "system", "content": TITLE_INSTRUCTION},
        {"role": "user", "content": first_message},
    ]


class _Done:
    """Marker returned by :func:`parse_event_line` for the end-of-stream line."""


DONE = _Done()


def parse_event_line(line: str) -> StreamDelta | _Done | None:
    """Decode a single protocol line.

    Returns ``DONE`` for the terminating sentinel, a :class:`StreamDelta` for a
    data line carrying text, and ``None`` for lines that carry nothing (other
    prefixes, keep-alive comments, absent delta content). Raises
    :class:`DecodeSkipped` when a data payload is not valid JSON.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :].strip()
    if payload == DONE_SENTINEL:
        return DONE
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise DecodeSkipped(line, reason=exc.msg) from exc
    text = _extract_delta_text(parsed)
    return StreamDelta(text) if text else None


def _extract_delta_text(parsed: Any) -> str:
    """Read ``choices[0].delta.content``; anything missing yields ``""``."""
    if not isinstance(parsed, dict):
        return ""
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


def _server_message(response: httpx.Response) -> str:
    """Extract ``error.message`` from an error body, with a generic fallback."""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return "Failed to connect to OpenRouter API"


class StreamIngestor:
    """Issue one streaming completion request and decode it into deltas.

    A fresh request is made for every :meth:`open_stream` call; nothing is
    retried. The deltas iterator handed out is single-use.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        *,
        temperature: float = 0.7,
        title_max_tokens: int = 20,
        referer: str = "http://localhost",
        client_title: str = "AI Chat App",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.title_max_tokens = title_max_tokens
        self.referer = referer
        self.client_title = client_title
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_payload(
        self, turns: Sequence[dict[str, str]], *, title_mode: bool = False
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": turn["role"], "content": turn["content"]} for turn in turns
            ],
            "temperature": self.temperature,
            "stream": True,
        }
        if title_mode:
            payload["max_tokens"] = self.title_max_tokens
        return payload

    def build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.referer,
            "X-Title": self.client_title,
        }

    @asynccontextmanager
    async def open_stream(
        self, turns: Sequence[dict[str, str]], *, title_mode: bool = False
    ) -> AsyncIterator[AsyncIterator[StreamDelta]]:
        """Open the request and yield an iterator of deltas.

        Raises :class:`ConnectionFailed` when the transport fails before a
        response arrives and :class:`RequestRejected` for non-2xx statuses,
        both before the ``async with`` body runs.
        """
        request = self._client.build_request(
            "POST",
            self.endpoint,
            json=self.build_payload(turns, title_mode=title_mode),
            headers=self.build_headers(),
        )
        LOGGER.info(
            "stream.request.start",
            extra={
                "event": "stream.request.start",
                "model": self.model,
                "turns": len(turns),
                "title_mode": title_mode,
            },
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            raise ConnectionFailed(
                f"Unable to reach completion API at {self.endpoint}: {exc}"
            ) from exc

        try:
            if not response.is_success:
                try:
                    await response.aread()
                except httpx.RequestError as exc:
                    raise ConnectionFailed(
                        f"Unable to read error response: {exc}"
                    ) from exc
                message = _server_message(response)
                LOGGER.warning(
                    "stream.request.rejected",
                    extra={
                        "event": "stream.request.rejected",
                        "status_code": response.status_code,
                        "server_message": message,
                    },
                )
                raise RequestRejected(message, status_code=response.status_code)
            yield self._iter_deltas(response)
        finally:
            await response.aclose()

    async def _iter_deltas(self, response: httpx.Response) -> AsyncIterator[StreamDelta]:
        saw_delta = False
        try:
            # aiter_lines reassembles lines split across network chunks.
            async for line in response.aiter_lines():
                try:
                    decoded = parse_event_line(line)
                except DecodeSkipped as exc:
                    LOGGER.warning(
                        "stream.line.skipped",
                        extra={"event": "stream.line.skipped", "reason": exc.reason},
                    )
                    continue
                if decoded is DONE:
                    return
                if isinstance(decoded, StreamDelta):
                    saw_delta = True
                    yield decoded
        except httpx.HTTPError as exc:
            raise ConnectionFailed(f"Stream interrupted: {exc}") from exc
        # Reaching here means no [DONE] marker arrived.
        if not saw_delta:
            raise EmptyStream("Response body contained no content")

    async def collect(
        self, turns: Sequence[dict[str, str]], *, title_mode: bool = False
    ) -> str:
        """Run a request to completion and return the accumulated text."""
        response_text = ""
        async with self.open_stream(turns, title_mode=title_mode) as deltas:
            async for delta in deltas:
                response_text += delta.text
        return response_text
