"""Small HTTP service that forwards search queries to a custom search API."""

from __future__ import annotations

import argparse
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
import json
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import httpx
import uvicorn

from .config import DEFAULT_CONFIG, load_config
from .logging_utils import configure_logging

LOGGER = logging.getLogger(__name__)

ROOT_BANNER = "AI Agent Chat Backend Running"

ClientFactory = Callable[[dict[str, Any]], httpx.AsyncClient]


def _default_client_factory(search_config: dict[str, Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=float(search_config.get("timeout", 30)))


async def _read_query(request: Request) -> str:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return ""
    query = body.get("query") if isinstance(body, dict) else None
    return query.strip() if isinstance(query, str) else ""


def create_app(
    search_config: dict[str, Any] | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Build the proxy application.

    ``client_factory`` receives the ``[search]`` section and returns the
    ``httpx.AsyncClient`` used for upstream calls; tests pass one backed by
    ``httpx.MockTransport``.
    """
    settings = dict(search_config or DEFAULT_CONFIG["search"])
    make_client = client_factory or _default_client_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.client = make_client(settings)
        LOGGER.info(
            "search.proxy.started",
            extra={"event": "search.proxy.started", "upstream": settings["upstream_url"]},
        )
        try:
            yield
        finally:
            await app.state.client.aclose()

    app = FastAPI(title="OpenRouter Chat Search Proxy", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/search")
    async def search(request: Request) -> JSONResponse:
        query = await _read_query(request)
        if not query:
            return JSONResponse(status_code=400, content={"error": "Query is required."})

        if not settings.get("api_key") or not settings.get("engine_id"):
            LOGGER.warning(
                "search.proxy.unconfigured",
                extra={"event": "search.proxy.unconfigured"},
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Search failed",
                    "details": "Search credentials are not configured.",
                },
            )

        client: httpx.AsyncClient = request.app.state.client
        try:
            response = await client.get(
                settings["upstream_url"],
                params={
                    "key": settings["api_key"],
                    "cx": settings["engine_id"],
                    "q": query,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            LOGGER.warning(
                "search.forward.failed",
                extra={"event": "search.forward.failed", "error_type": type(exc).__name__},
            )
            return JSONResponse(
                status_code=500, content={"error": "Search failed", "details": str(exc)}
            )
        return JSONResponse(content=payload)

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return ROOT_BANNER

    return app


def main(argv: Sequence[str] | None = None) -> None:
    """Run the search proxy with uvicorn using the ``[search]`` config section."""
    parser = argparse.ArgumentParser(
        prog="openrouter-chat-search", description="Search proxy for OpenRouter Chat"
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    args = parser.parse_args(list(argv) if argv is not None else None)

    config = load_config(args.config)
    configure_logging(config["logging"])
    search_config = config["search"]
    uvicorn.run(
        create_app(search_config),
        host=search_config["host"],
        port=int(search_config["port"]),
        log_level="warning",
    )


if __name__ == "__main__":
    main()
