"""Logging configuration and structured event helpers.

The terminal belongs to the UI while it runs, so records go to a rotating
file under the platform log directory unless stderr output is requested.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .paths import log_dir

DEFAULT_LOG_FILE_NAME = "lazyaws.log"
DEFAULT_LOG_MAX_BYTES = 2_000_000
DEFAULT_LOG_BACKUPS = 3
# botocore is chatty at DEBUG; keep it quieter than our own records.
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


@dataclass(frozen=True)
class LogConfig:
    """Resolved logging settings for one process."""

    log_file: Path
    level: int = logging.INFO
    stderr: bool = False
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUPS


def _parse_level(value: str | None, default: int) -> int:
    """Parse a log level name or number, falling back to ``default``."""
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    with contextlib.suppress(ValueError):
        return int(value)
    return default


def build_log_config(*, level_name: str | None = None, default_level: int = logging.INFO) -> LogConfig:
    """Build log configuration from environment variables.

    ``level_name`` (from the command line) wins over ``LAZYAWS_LOG_LEVEL``.
    """
    directory = Path(os.getenv("LAZYAWS_LOG_DIR") or log_dir())
    directory.mkdir(parents=True, exist_ok=True)
    return LogConfig(
        log_file=directory / DEFAULT_LOG_FILE_NAME,
        level=_parse_level(level_name or os.getenv("LAZYAWS_LOG_LEVEL"), default_level),
        stderr=_parse_bool(os.getenv("LAZYAWS_LOG_STDERR"), False),
        max_bytes=_parse_int(os.getenv("LAZYAWS_LOG_MAX_BYTES"), DEFAULT_LOG_MAX_BYTES),
        backup_count=_parse_int(os.getenv("LAZYAWS_LOG_BACKUPS"), DEFAULT_LOG_BACKUPS),
    )


def configure_logging(config: LogConfig) -> None:
    """Reset root handlers and attach the rotating file handler."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(config.level)

    formatter = ContextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    file_handler = RotatingFileHandler(
        config.log_file,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if config.stderr:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(config.level, logging.WARNING))


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a short stable event name with key=value fields."""
    logger.log(level, event, extra={"event_fields": fields})


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        if value == "":
            return '""'
        if any(ch.isspace() for ch in value) or "=" in value or '"' in value:
            return json.dumps(value)
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=True, separators=(",", ":"), default=str)
    return str(value)


def format_fields(fields: dict[str, Any]) -> str:
    """Render a field dict as sorted ``key=value`` pairs, skipping ``None``."""
    parts: list[str] = []
    for key in sorted(fields):
        value = fields[key]
        if value is None:
            continue
        parts.append(f"{key}={_format_value(value)}")
    return " ".join(parts)


class ContextFormatter(logging.Formatter):
    """Append event fields to the standard text line."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extra = format_fields(getattr(record, "event_fields", {}) or {})
        if extra:
            return f"{base} {extra}"
        return base
