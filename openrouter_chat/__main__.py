"""CLI entrypoint for openrouter-chat."""

from __future__ import annotations

import argparse
from importlib import metadata
from pathlib import Path
from typing import Sequence

from .app import OpenRouterChatApp
from .config import ensure_config_dir, load_config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openrouter-chat", description="OpenRouter Chat TUI"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Read configuration from this TOML file instead of the default",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("openrouter-chat-tui")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"openrouter-chat {version}")
        return

    ensure_config_dir()
    app = OpenRouterChatApp(config=load_config(args.config))
    app.run()


if __name__ == "__main__":
    main()
