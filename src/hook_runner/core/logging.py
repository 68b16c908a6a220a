"""Structured logging configuration with JSON output and correlation IDs.

Uses python-json-logger for structured JSON logging. Records go to the
``Logfile`` named in the hook file and, optionally, to stdout.
"""

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

from hook_runner.config import Settings, get_settings

# Context variables for request-scoped identifiers
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)
delivery_id_ctx: ContextVar[str | None] = ContextVar("delivery_id", default=None)

# Marks handlers installed by setup_logging so reconfiguration leaves others alone
_OWNED_HANDLER_ATTR = "_hook_runner_owned"


class CorrelationIdFilter(logging.Filter):
    """Log filter that adds correlation_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get()
        record.delivery_id = delivery_id_ctx.get() or record.correlation_id
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        if getattr(record, "correlation_id", None):
            log_record["correlation_id"] = record.correlation_id
        if getattr(record, "delivery_id", None):
            log_record["delivery_id"] = record.delivery_id

        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno


def _build_formatter(settings: Settings) -> logging.Formatter:
    if settings.log_format == "json":
        return CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def shutdown_logging() -> None:
    """Detach and close the handlers installed by :func:`setup_logging`."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED_HANDLER_ATTR, False):
            root_logger.removeHandler(handler)
            handler.close()


def setup_logging(log_file: str | Path | None = None, settings: Settings | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        log_file: File to append log records to. Opening it is done eagerly so
            an unusable path raises ``OSError`` before anything is served.
        settings: Settings to use, defaults to the cached process settings.
    """
    settings = settings or get_settings()
    formatter = _build_formatter(settings)

    handlers: list[logging.Handler] = []
    if log_file:
        path = Path(log_file)
        handlers.append(logging.FileHandler(path, mode="a", encoding="utf-8"))
    if settings.log_to_stdout or not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    shutdown_logging()

    root_logger = logging.getLogger()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIdFilter())
        setattr(handler, _OWNED_HANDLER_ATTR, True)
        root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce verbosity of third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info(
        "Logging configured",
        extra={
            "environment": settings.environment,
            "log_level": settings.log_level,
            "log_format": settings.log_format,
            "log_file": str(log_file) if log_file else None,
        },
    )