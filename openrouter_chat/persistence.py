"""Durable key-value storage for chats and user settings."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
import re
import tempfile
from typing import Any

from .exceptions import PersistenceError, StorageCorrupt
from .models import Chat

LOGGER = logging.getLogger(__name__)

CHATS_KEY = "chats"
THEME_KEY = "theme"
MODEL_KEY = "model_selection"
SYSTEM_MESSAGE_KEY = "system_message"
API_KEY_KEY = "openrouter_api_key"

_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")


class PersistentStore:
    """Store JSON values under string keys, one file per key.

    Every write replaces the whole value: the payload is written to a temp file
    in the same directory and moved into place with ``os.replace`` so readers
    never observe a half-written record.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.directory, 0o700)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key {key!r}.")
        return self.directory / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def read_raw(self, key: str) -> str | None:
        """Return the stored text for ``key`` or ``None`` when absent."""
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def read(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for ``key``; undecodable values yield ``default``."""
        raw = self.read_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning(
                "store.read.invalid",
                extra={"event": "store.read.invalid", "key": key},
            )
            return default

    def write(self, key: str, value: Any) -> None:
        """Atomically replace the value stored under ``key``."""
        target = self._path_for(key)
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        try:
            self._ensure_directory()
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{key}-", suffix=".tmp", dir=self.directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                self._enforce_permissions(Path(temp_name))
                os.replace(temp_name, target)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Unable to write {key!r}: {exc}") from exc

    def load_chats(self) -> list[Chat] | None:
        """Return the persisted chat collection, or ``None`` when nothing is stored.

        Raises :class:`StorageCorrupt` when the record exists but cannot be
        decoded into chats.
        """
        raw = self.read_raw(CHATS_KEY)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError("Chat collection must be a list.")
            return [Chat.from_dict(item) for item in payload]
        except (ValueError, TypeError, AttributeError) as exc:
            raise StorageCorrupt(f"Stored chat collection is unreadable: {exc}") from exc

    def save_chats(self, chats: list[Chat]) -> None:
        self.write(CHATS_KEY, [chat.to_dict() for chat in chats])


@dataclass
class Settings:
    """User-editable settings kept alongside the chat collection."""

    api_key: str
    model: str
    system_message: str
    theme: str

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key.strip())


class SettingsStore:
    """Read and write :class:`Settings` through a :class:`PersistentStore`."""

    def __init__(self, store: PersistentStore, defaults: Settings) -> None:
        self._store = store
        self._defaults = defaults

    def _read_string(self, key: str, default: str) -> str:
        value = self._store.read(key, default)
        return value if isinstance(value, str) else default

    def load(self) -> Settings:
        return Settings(
            api_key=self._read_string(API_KEY_KEY, self._defaults.api_key),
            model=self._read_string(MODEL_KEY, self._defaults.model) or self._defaults.model,
            system_message=self._read_string(
                SYSTEM_MESSAGE_KEY, self._defaults.system_message
            ),
            theme=self._read_string(THEME_KEY, self._defaults.theme),
        )

    def save(self, settings: Settings) -> None:
        self._store.write(API_KEY_KEY, settings.api_key.strip())
        self._store.write(MODEL_KEY, settings.model)
        self._store.write(SYSTEM_MESSAGE_KEY, settings.system_message)
        self._store.write(THEME_KEY, settings.theme)

    def save_theme(self, theme: str) -> None:
        self._store.write(THEME_KEY, theme)
