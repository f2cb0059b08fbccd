"""
Structured Logging Utilities

This module centralizes logging setup for channel resolution. It provides
helpers for masking repository credentials, emitting JSON log records, and
managing correlation identifiers so that every line written during one CLI run
can be tied back to the session that produced it.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from .settings import LoggingSettings

LOGGER_NAME = "ChannelResolve"

_STRUCTURED_FIELDS = (
    "stage",
    "channel",
    "coordinate",
    "version",
    "repository",
    "attempt",
    "error",
    "correlation_id",
)


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"password": "secret", "stage": "fetch"})
        {'password': '***masked***', 'stage': 'fetch'}
    """
    sensitive_keys = {"authorization", "password", "token", "secret", "username"}
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in sensitive_keys:
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def generate_correlation_id() -> str:
    """Create a twelve character identifier linking related log entries."""
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


class _CorrelationFilter(logging.Filter):
    def __init__(self, correlation_id: str) -> None:
        super().__init__()
        self.correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = self.correlation_id
        return True


def setup_logging(
    settings: Optional[LoggingSettings] = None,
    log_dir: Optional[Path] = None,
    *,
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """Configure console and optional JSON file handlers for ``ChannelResolve``.

    Handlers installed by a previous call are removed first, so the function
    can be called again with different settings.

    Examples:
        >>> logger = setup_logging(LoggingSettings(level="DEBUG"))
        >>> logger.name
        'ChannelResolve'
    """
    settings = settings or LoggingSettings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_channelresolve_managed", False):
            logger.removeHandler(handler)
            handler.close()

    correlation = _CorrelationFilter(correlation_id or generate_correlation_id())

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler.addFilter(correlation)
    stream_handler._channelresolve_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    target_dir = log_dir or settings.log_dir
    if settings.json_logs and target_dir is not None:
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            target_dir / f"channelresolve-{today}.jsonl",
            maxBytes=int(settings.max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(correlation)
        file_handler._channelresolve_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = ["setup_logging", "mask_sensitive_data", "generate_correlation_id", "JSONFormatter", "LOGGER_NAME"]
