"""
Logging setup for Prizm Connect using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- logs/service.jsonl: JSON format for routing, delivery and assistant turns
- logs/errors.jsonl: JSON format for error tracking
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys

from typing import Any

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import (
    LOG_BACKUP_COUNT_ERRORS,
    LOG_BACKUP_COUNT_SERVICE,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\+?\b\d{3}[-. ]?\d{3}[-. ]?\d{4}\b", "[PHONE]"),
    (r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b", "[API_KEY]"),
]


class ErrorFilter(logging.Filter):
    """Only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """Format: HH:MM:SS [LEVEL] logger_name - message, with the level coloured."""

    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        level_fmt = f"{color}[{record.levelname}]{self.RESET}"
        record.asctime = self.formatTime(record, "%H:%M:%S")
        line = f"{record.asctime} {level_fmt} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_uvicorn_logging() -> None:
    """Make uvicorn's access/error loggers use the same console format."""
    formatter = ColoredConsoleFormatter()
    for name in ("uvicorn.access", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = []
        uv_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        uv_logger.addHandler(handler)
        uv_logger.propagate = False


def setup_logging(name: str = "prizm-connect", debug: bool | None = None) -> logging.Logger:
    """
    Set up logging with console and rotating JSON file handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides DEBUG env var)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers = []

    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    service_handler = logging.handlers.RotatingFileHandler(
        log_dir / "service.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_SERVICE,
        encoding="utf-8",
    )
    service_handler.setLevel(logging.INFO)
    service_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(message)s %(user_id)s %(request_id)s",
            timestamp=True,
        )
    )
    logger.addHandler(service_handler)

    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


class ServiceLogger:
    """
    High-level logging interface for Prizm Connect.
    Wraps standard Python logging; keyword arguments become structured fields.
    """

    def __init__(self, name: str = "prizm-connect"):
        self.logger = setup_logging(name)

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if ctx := get_request_context():
            for key, value in ctx.to_log_context().items():
                kwargs.setdefault(key, value)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        try:
            return bool(get_settings().enable_content_logging)
        except Exception:
            # Settings not loadable (missing credentials); keep content hidden
            return False

    def _redact_content(self, text: str) -> str:
        redacted = text
        for pattern, replacement in REDACTION_PATTERNS:
            redacted = re.sub(pattern, replacement, redacted)
        return redacted

    def _preview(self, text: str) -> str:
        preview = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        if len(text) > LOG_PREVIEW_LENGTH:
            preview += "..."
        return preview

    def log_assistant_turn(
        self,
        user_id: int,
        user_input: str,
        response: str,
        duration_ms: float | None = None,
        history_length: int = 0,
        fallback: bool = False,
    ) -> None:
        """Log one user → assistant exchange, hiding content unless enabled."""
        should_log_content = self._should_log_content()
        if should_log_content:
            user_preview = self._preview(user_input)
            response_preview = self._preview(response)
        else:
            user_preview = "[HIDDEN]"
            response_preview = "[HIDDEN]"

        msg_parts = [f"User {user_id}: {user_preview} → AI: {response_preview}"]
        if fallback:
            msg_parts.append("[fallback]")
        if duration_ms is not None:
            msg_parts.append(f"[{duration_ms:.0f}ms]")

        extra_data: dict[str, Any] = {
            "assistant_turn": True,
            "user_id": user_id,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "history_length": history_length,
            "fallback": fallback,
            "content_logging": should_log_content,
        }
        if duration_ms is not None:
            extra_data["ms"] = int(duration_ms)

        self.logger.info(" ".join(msg_parts), extra=self._enrich_context(extra_data))


# Global logger instance
logger = ServiceLogger()
