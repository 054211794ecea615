"""Client configuration.

`ClientConfig` is immutable and passed explicitly into every client,
session and connection. The module-level default instance is a convenience
for applications that want one process-wide configuration; the streaming
core never reads it.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import __version__
from .errors import ValidationError

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
API_KEY_ENV = "ELEVENLABS_API_KEY"
BASE_URL_ENV = "ELEVENLABS_BASE_URL"


class ClientConfig(BaseModel):
    """Credentials and endpoint settings shared by REST and WebSocket paths."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(min_length=1, repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(default=30.0, gt=0)  # REST request timeout, seconds
    open_timeout: float = Field(default=10.0, gt=0)  # WebSocket handshake, seconds
    ping_interval: float | None = 20.0
    user_agent: str = f"elevenlabs-stream/{__version__}"

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base URL: {value}")
        return value.rstrip("/")

    @property
    def ws_base_url(self) -> str:
        """Base URL with the scheme switched to ws:// or wss://."""
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):]
        return "ws://" + self.base_url[len("http://"):]

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key}

    def to_dict(self) -> dict[str, Any]:
        """Redacted representation, safe to log."""
        data = self.model_dump()
        data["api_key"] = "[REDACTED]"
        return data

    @classmethod
    def from_env(
        cls,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        dotenv_path: str | Path | None = None,
        **overrides: Any,
    ) -> "ClientConfig":
        """Build a config from arguments, falling back to the environment.

        Args:
            api_key: Explicit API key (wins over ELEVENLABS_API_KEY).
            base_url: Explicit base URL (wins over ELEVENLABS_BASE_URL).
            dotenv_path: Optional .env file to load before reading the environment.
            **overrides: Any other ClientConfig field.

        Raises:
            ValidationError: If no API key is provided or found in environment.
        """
        load_dotenv(dotenv_path)

        api_key = api_key or os.environ.get(API_KEY_ENV)
        if not api_key:
            raise ValidationError(
                f"ElevenLabs API key not provided. Set {API_KEY_ENV} environment variable."
            )
        base_url = base_url or os.environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL
        return cls(api_key=api_key, base_url=base_url, **overrides)


_default_config: ClientConfig | None = None


def configure(**fields: Any) -> ClientConfig:
    """Set the process-wide default configuration.

    Fields not given are resolved from the environment as in from_env().
    """
    global _default_config
    _default_config = ClientConfig.from_env(**fields)
    return _default_config


def get_default_config() -> ClientConfig:
    """Return the process-wide default, resolving it from the environment once."""
    global _default_config
    if _default_config is None:
        _default_config = ClientConfig.from_env()
    return _default_config


def reset_default_config() -> None:
    global _default_config
    _default_config = None
