"""Runtime settings for repository access, retries, and logging.

Settings are pydantic models grouped under :class:`ResolverSettings`, a
``pydantic-settings`` model that reads ``CHANNELRESOLVE_*`` environment
variables (nested fields use ``__``, e.g. ``CHANNELRESOLVE_HTTP__TIMEOUT_READ``).
:func:`get_default_settings` memoises the environment-derived instance.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "HttpSettings",
    "RetrySettings",
    "LoggingSettings",
    "ResolverSettings",
    "CACHE_DIR",
    "get_default_settings",
    "invalidate_default_settings",
]

CACHE_DIR = Path.home() / ".cache" / "channelresolve"


def _normalize_path(value: Any) -> Path:
    return Path(value).expanduser().resolve()


class HttpSettings(BaseModel):
    """HTTP client settings for remote repositories."""

    model_config = ConfigDict(frozen=True)

    timeout_connect: float = Field(default=5.0, gt=0.0, le=60.0, description="Connect timeout in seconds")
    timeout_read: float = Field(default=30.0, gt=0.0, le=300.0, description="Read timeout in seconds")
    trust_env: bool = Field(
        default=True,
        description="Honor HTTP(S)_PROXY and NO_PROXY environment variables",
    )
    user_agent: str = Field(
        default="ChannelResolve/0.1 (+https://pypi.org/project/channelresolve/)",
        description="User-Agent header value",
    )


class RetrySettings(BaseModel):
    """Retry settings for transient repository failures."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, le=20, description="Attempts per request")
    backoff_base: float = Field(default=0.25, ge=0.0, le=10.0, description="Backoff start (seconds)")
    backoff_max: float = Field(default=4.0, ge=0.0, le=60.0, description="Backoff cap (seconds)")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    json_logs: bool = Field(default=False, description="Write JSON lines to the log directory")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files")
    max_log_size_mb: int = Field(default=50, gt=0, description="Rotate log files beyond this size")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    @field_validator("log_dir", mode="before")
    @classmethod
    def normalize_log_dir(cls, v: Any) -> Optional[Path]:
        if v is None or v == "":
            return None
        return _normalize_path(v)

    def level_int(self) -> int:
        return getattr(logging, self.level, logging.INFO)


class ResolverSettings(BaseSettings):
    """Top-level settings consumed by repository factories and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="CHANNELRESOLVE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    cache_dir: Path = Field(
        default_factory=lambda: CACHE_DIR / "artifacts",
        description="Where remote artifacts are downloaded",
    )
    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("cache_dir", mode="before")
    @classmethod
    def normalize_cache_dir(cls, v: Any) -> Path:
        return _normalize_path(v)


_DEFAULT_SETTINGS_LOCK = threading.Lock()
_DEFAULT_SETTINGS: Optional[ResolverSettings] = None


def get_default_settings() -> ResolverSettings:
    """Return a memoised :class:`ResolverSettings` read from the environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS is None:
            try:
                _DEFAULT_SETTINGS = ResolverSettings()
            except PydanticValidationError as exc:
                raise ConfigurationError(f"Invalid CHANNELRESOLVE_* settings: {exc}") from exc
        return _DEFAULT_SETTINGS


def invalidate_default_settings() -> None:
    """Forget the memoised settings so the next call re-reads the environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS = None
