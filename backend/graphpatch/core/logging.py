"""Structured logging configuration for the graph patch service.

This module provides:
- JSON structured logs for file output and non-debug consoles
- Colored console output for local development
- Rotating file handler (10MB max, 5 backups)
- Redaction of store API keys and other secrets before any handler writes
- Scoped structured context (``LogContext``) for per-workflow log lines

Every engine log line carries its context under ``extra={"context": {...}}``
so patch invocations can be correlated by ``workflow_id``.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from graphpatch.core.config import settings


class LogLevel(str, Enum):
    """Log level enumeration for type-safe log level configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from log records.

    The workflow store is reached with a bearer API key and nodes may carry
    credential references, so values following any of the keys below are
    replaced with ``[REDACTED]`` in both the message and string args.

    Examples:
        >>> logger = logging.getLogger("graphpatch")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("api_key=abc123")
        # Logs: "api_key: [REDACTED]"
    """

    SENSITIVE_PATTERNS: ClassVar[list[str]] = [
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "x-n8n-api-key",
        "authorization",
        "bearer",
        "credential",
    ]

    _REGEXES: ClassVar[list[tuple[str, re.Pattern[str]]]] = [
        (
            pattern,
            re.compile(
                rf"{re.escape(pattern)}[:=]\s*(?:bearer\s+)?[\"']?[^\s\"',]+",
                re.IGNORECASE,
            ),
        )
        for pattern in SENSITIVE_PATTERNS
    ] + [("bearer", re.compile(r"bearer\s+(?!\[REDACTED\])[^\s\"',]+", re.IGNORECASE))]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact the record in place; never drops it.

        Args:
            record: Log record to filter

        Returns:
            Always True
        """
        record.msg = self.redact(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self.redact(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    self.redact(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Return ``text`` with sensitive values replaced."""
        for pattern, regex in cls._REGEXES:
            text = regex.sub(f"{pattern}: [REDACTED]", text)
        return text


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2026-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "graphpatch.services.workflow.patcher",
            "message": "Patch persisted",
            "service": "Graph Patch API",
            "version": "0.1.0",
            "context": {"workflow_id": "wf-1", "state": "persisted"}
        }
    """

    def __init__(
        self,
        service_name: str = "GraphPatch",
        service_version: str = "0.1.0",
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.service_version = service_version

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.service_version,
        }

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
                "process": record.process,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable colored console output for development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and inline context."""
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"

        if hasattr(record, "context") and record.context:
            record.msg = f"{record.msg} | Context: {json.dumps(record.context, default=str)}"

        return super().format(record)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str = "GraphPatch",
    enable_json: bool = True,
    enable_console: bool = True,
) -> logging.Logger:
    """Configure root logging with file and console handlers.

    Existing root handlers are removed so repeated calls do not duplicate
    output.

    Args:
        log_level: Logging level name. Defaults to settings.LOG_LEVEL
        log_file: Path to log file. Defaults to logs/app.log
        service_name: Name of the service for log metadata
        enable_json: Use JSON formatting for the file handler
        enable_console: Add a stdout handler

    Returns:
        Configured root logger instance

    Examples:
        >>> logger = setup_logging(log_level="INFO")
        >>> logger.info("Service started", extra={"context": {"port": 8000}})
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL

    log_file_path: Path
    if log_file is None:
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        log_file_path = log_dir / "app.log"
    else:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    sensitive_filter = SensitiveDataFilter() if settings.LOG_SENSITIVE_FILTER else None
    context_filter = ContextFilter()

    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(context_filter)
    if enable_json:
        file_handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    if sensitive_filter is not None:
        file_handler.addFilter(sensitive_filter)
    logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.addFilter(context_filter)
        if settings.DEBUG:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        if sensitive_filter is not None:
            console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    logger.info(
        f"Logging initialized - Level: {log_level}, File: {log_file_path}",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": str(log_file_path),
                "service": service_name,
            }
        },
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Examples:
        >>> from graphpatch.core.logging import get_logger
        >>> logger = get_logger(__name__)
    """
    return logging.getLogger(name)


_log_context: ContextVar[dict[str, Any]] = ContextVar("graphpatch_log_context", default={})


class ContextFilter(logging.Filter):
    """Merge the active ``LogContext`` into ``record.context``.

    Values passed explicitly through ``extra={"context": ...}`` win over the
    scoped ones.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        scoped = _log_context.get()
        if scoped:
            explicit = getattr(record, "context", None) or {}
            record.context = {**scoped, **explicit}
        return True


class LogContext:
    """Attach structured context to every record logged inside the block.

    Backed by a ``ContextVar`` so concurrent patch invocations running in
    separate tasks keep separate context.

    Examples:
        >>> logger = get_logger(__name__)
        >>> with LogContext(workflow_id="wf-1"):
        ...     logger.info("Applying operations")
        # record.context == {"workflow_id": "wf-1"}
    """

    def __init__(self, **context: Any) -> None:
        self.context = context
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


__all__ = [
    "ColoredConsoleFormatter",
    "ContextFilter",
    "JSONFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataFilter",
    "get_logger",
    "setup_logging",
]
