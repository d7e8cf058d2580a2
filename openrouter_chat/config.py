"""Configuration loading and validation for the OpenRouter chat TUI."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
import tomllib
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "openrouter-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
VALID_THEMES = {"dark", "light"}
MODEL_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+(?:/[A-Za-z0-9._:-]+)?$")

# Environment variables that take precedence over the file for the search proxy.
_SEARCH_ENV_OVERRIDES: dict[str, str] = {
    "GOOGLE_API_KEY": "api_key",
    "GOOGLE_CSE_ID": "engine_id",
    "PORT": "port",
}


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "OpenRouter Chat"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _non_empty_string(value)


class ModelOption(BaseModel):
    """A selectable completion model."""

    id: str
    name: str
    description: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _validate_model_id(cls, value: Any) -> str:
        normalized = _non_empty_string(value)
        if not MODEL_ID_PATTERN.match(normalized):
            raise ValueError(f"Invalid model identifier {normalized!r}.")
        return normalized

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _non_empty_string(value)


def _default_model_options() -> list[ModelOption]:
    return [
        ModelOption(
            id="openai/gpt-3.5-turbo",
            name="GPT-3.5 Turbo",
            description="Fast and cost-effective general purpose model",
        ),
        ModelOption(
            id="anthropic/claude-instant-v1",
            name="Claude Instant",
            description="Fast and affordable assistant from Anthropic",
        ),
        ModelOption(
            id="meta-llama/llama-2-13b-chat",
            name="Llama 2 (13B)",
            description="Open source model from Meta AI",
        ),
    ]


class OpenRouterConfig(BaseModel):
    """Completion endpoint, request shape, and model settings."""

    endpoint: str = "https://openrouter.ai/api/v1/chat/completions"
    model: str = "openai/gpt-3.5-turbo"
    models: list[ModelOption] = Field(default_factory=_default_model_options)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    title_max_tokens: int = Field(default=20, ge=1, le=512)
    timeout: int = Field(default=120, ge=1, le=3600)
    referer: str = "http://localhost"
    client_title: str = "AI Chat App"
    system_message: str = "You are a helpful, accurate, and friendly AI assistant."

    @field_validator("endpoint", "model", "client_title", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty_string(value)

    @field_validator("system_message", "referer", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @model_validator(mode="after")
    def _validate_endpoint_and_models(self) -> OpenRouterConfig:
        parsed = urlparse(self.endpoint)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("openrouter.endpoint must use http or https scheme.")
        if not (parsed.hostname or "").strip():
            raise ValueError("openrouter.endpoint must include a hostname.")

        deduped: list[ModelOption] = []
        seen: set[str] = set()
        for option in self.models:
            if option.id not in seen:
                seen.add(option.id)
                deduped.append(option)
        if self.model not in seen:
            deduped.insert(0, ModelOption(id=self.model, name=self.model))
        self.models = deduped
        return self


class UIConfig(BaseModel):
    """Theme and streaming presentation settings."""

    theme: str = "dark"
    show_timestamps: bool = True
    fallback_chunk_chars: int = Field(default=5, ge=1, le=1024)
    fallback_interval_seconds: float = Field(default=0.03, ge=0.0, le=5.0)
    fallback_initial_delay_seconds: float = Field(default=0.5, ge=0.0, le=30.0)
    thinking_interval_seconds: float = Field(default=0.4, ge=0.05, le=5.0)

    @field_validator("theme", mode="before")
    @classmethod
    def _validate_theme(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("theme must be a string.")
        normalized = value.strip().lower()
        if normalized not in VALID_THEMES:
            raise ValueError(f"Unsupported theme {normalized!r}.")
        return normalized


class KeybindsConfig(BaseModel):
    """Keyboard action mapping."""

    new_chat: str = "ctrl+n"
    clear_chat: str = "ctrl+l"
    delete_chat: str = "ctrl+d"
    open_settings: str = "ctrl+s"
    toggle_theme: str = "ctrl+t"
    copy_last_message: str = "ctrl+y"
    interrupt_stream: str = "escape"
    quit: str = "ctrl+q"

    @field_validator("*", mode="before")
    @classmethod
    def _validate_keybind(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Keybind must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("Keybind must not be empty.")
        return normalized


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/openrouter-chat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _non_empty_string(value)


class PersistenceConfig(BaseModel):
    """Location of the durable key-value store."""

    directory: str = "~/.local/state/openrouter-chat/store"

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        return _non_empty_string(value)


class SearchConfig(BaseModel):
    """Search proxy forwarding settings."""

    upstream_url: str = "https://www.googleapis.com/customsearch/v1"
    api_key: str = ""
    engine_id: str = ""
    host: str = "127.0.0.1"
    port: int = Field(default=5000, ge=1, le=65535)
    timeout: int = Field(default=30, ge=1, le=600)

    @field_validator("api_key", "engine_id", mode="before")
    @classmethod
    def _normalize_secret(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @field_validator("upstream_url", "host", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    openrouter: OpenRouterConfig = OpenRouterConfig()
    ui: UIConfig = UIConfig()
    keybinds: KeybindsConfig = KeybindsConfig()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    search: SearchConfig = SearchConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create the config directory if needed; failures are logged, not raised."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning(
            "config.dir.unavailable",
            extra={"event": "config.dir.unavailable", "path": str(directory), "reason": str(exc)},
        )
    return directory


def _merge_sections(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``overrides`` on ``defaults``, descending into nested tables."""
    result = deepcopy(defaults)
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _merge_sections(current, value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    search = dict(raw.get("search") or {})
    for env_name, field_name in _SEARCH_ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            search[field_name] = value
    raw["search"] = search
    return raw


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        LOGGER.warning(
            "config.parse.failed",
            extra={"event": "config.parse.failed", "path": str(path), "reason": str(exc)},
        )
        return {}
    return data if isinstance(data, dict) else {}


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged data, falling back to the defaults when any section is invalid.

    Environment overrides still apply to the fallback when they are valid.
    """
    try:
        return Config.model_validate(raw).model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning(
            "config.validation.failed",
            extra={"event": "config.validation.failed", "errors": exc.error_count()},
        )
        return _defaults_with_env_overrides()
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def _defaults_with_env_overrides() -> dict[str, dict[str, Any]]:
    try:
        return Config.model_validate(
            _apply_env_overrides(deepcopy(DEFAULT_CONFIG))
        ).model_dump(by_alias=True)
    except ValidationError:
        return deepcopy(DEFAULT_CONFIG)


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """Load ``config.toml`` over the defaults and validate every section.

    Environment overrides for the search proxy are applied last. Passing
    ``config_path`` reads another file, which tests and tooling rely on.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)
    merged = _merge_sections(DEFAULT_CONFIG, _read_toml(target_path))
    return _validate_config(_apply_env_overrides(merged))
