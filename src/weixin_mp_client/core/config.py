"""Settings for the WeChat Official Account client.

Values come from keyword arguments, ``WEIXIN_MP_*`` environment variables
(nested fields use ``__``, e.g. ``WEIXIN_MP_RETRY__MAX_ATTEMPTS``), a ``.env``
file or a YAML document whose strings may reference ``${ENV_VARS}``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://api.weixin.qq.com/cgi-bin"
DEFAULT_FILE_BASE_URL = "https://file.api.weixin.qq.com/cgi-bin"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_dotenv_done = False


def _read_dotenv() -> None:
    global _dotenv_done
    if _dotenv_done:
        return
    load_dotenv()
    _dotenv_done = True


def _substitute_env(value: Any) -> Any:
    """Replace ``$VAR`` / ``${VAR}`` references in every string of ``value``."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_substitute_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _substitute_env(item) for key, item in value.items()}
    return value


class RetryPolicyConfig(BaseModel):
    """How often and how patiently a failing remote call is repeated."""

    max_attempts: int = Field(
        default=3, ge=1, description="Total attempts per call, the first one included"
    )
    backoff_seconds: float = Field(
        default=0.5, ge=0.0, description="Pause before the second attempt"
    )
    backoff_multiplier: float = Field(
        default=2.0, ge=1.0, description="Growth factor of the pause after every retry"
    )
    max_backoff_seconds: float = Field(
        default=10.0, ge=0.0, description="Upper bound for a single pause"
    )


class LoggingConfig(BaseModel):
    """Handlers installed by ``setup_logging``."""

    level: str = Field(default="INFO", description="Threshold for the weixin_mp loggers")
    format: str = Field(
        default="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        description="Record format of the log file",
    )
    log_file: str | None = Field(default=None, description="Rotating log file, off when unset")
    max_bytes: int = Field(default=5 * 1024 * 1024, description="Rotate after this many bytes")
    backup_count: int = Field(default=3, description="Rotated files to keep")

    @field_validator("level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return level


class WeixinMPConfig(BaseSettings):
    """Everything a :class:`~weixin_mp_client.api.client.WeixinMPClient` needs."""

    model_config = SettingsConfigDict(
        env_prefix="WEIXIN_MP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_id: str = Field(default="", description="Official account AppID")
    app_secret: str = Field(default="", description="Official account AppSecret")
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, description="Base URL of the JSON endpoints"
    )
    file_base_url: str = Field(
        default=DEFAULT_FILE_BASE_URL, description="Base URL of the media endpoints"
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    token_safety_margin: float = Field(
        default=300.0,
        ge=0.0,
        description="Treat the access token as expired this many seconds early",
    )
    token_cache_file: str | None = Field(
        default=None,
        description="Where to persist the access token between runs (disabled if unset)",
    )
    retry: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("api_base_url", "file_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("Base URL must start with http:// or https://")
        return value.rstrip("/")

    def require_credentials(self) -> None:
        """Raise ``ValueError`` unless both AppID and AppSecret are set."""
        if not self.app_id or not self.app_secret:
            raise ValueError("WeChat app_id and app_secret are required")

    @classmethod
    def from_yaml(cls, path: str | Path) -> WeixinMPConfig:
        """Build the configuration from a YAML mapping.

        Environment variables still fill in whatever the file leaves out.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ValueError: If the file is not valid YAML.
        """
        _read_dotenv()
        source = Path(path)
        if not source.is_file():
            raise FileNotFoundError(f"Configuration file not found: {source}")

        try:
            raw = yaml.safe_load(source.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {source}: {exc}") from exc

        return cls(**_substitute_env(raw or {}))

    @classmethod
    def from_env(cls) -> WeixinMPConfig:
        """Build the configuration from ``WEIXIN_MP_*`` variables and ``.env``."""
        _read_dotenv()
        return cls()


def load_config(path: str | Path | None = None) -> WeixinMPConfig:
    """Load configuration from ``path`` if given, else from the environment."""
    if path is None:
        return WeixinMPConfig.from_env()
    return WeixinMPConfig.from_yaml(path)
