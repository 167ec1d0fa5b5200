"""
Structured logging for atomic-import.

All module loggers are children of the ``atomic_import`` package logger, which
owns a single stderr handler. JSON output (python-json-logger) is the default
so group, wave and job events can be shipped to a log pipeline; ``text`` is
meant for a terminal.

The active import run is tracked in a context variable and stamped onto every
record as ``job_id``, ``tenant_id`` and ``entity_kind``.
"""
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

PACKAGE_LOGGER = "atomic_import"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_run_context: ContextVar[dict[str, Any]] = ContextVar("atomic_import_run_context", default={})


class RunContextFilter(logging.Filter):
    """Copy the current run context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _run_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ImportJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        # %(timestamp)s in the format pre-fills the key with None
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info and "exc_type" not in log_record:
            log_record["exc_type"] = record.exc_info[0].__name__


def configure_logging(level: str | None = None, format_type: str | None = None) -> logging.Logger:
    """
    (Re)configure the package logger.

    Args:
        level: Level name; falls back to ``LOG_LEVEL`` then INFO
        format_type: ``json`` or ``text``; falls back to ``LOG_FORMAT`` then json

    Returns:
        The ``atomic_import`` logger
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    format_type = (format_type or os.getenv("LOG_FORMAT") or "json").lower()

    handler = logging.StreamHandler(sys.stderr)
    if format_type == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(ImportJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    handler.addFilter(RunContextFilter())

    root = logging.getLogger(PACKAGE_LOGGER)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.getLevelNamesMapping().get(level_name, logging.INFO))
    root.propagate = False
    return root


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Return a logger under the package namespace, configuring it once."""
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        configure_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


@contextmanager
def run_context(**fields: Any) -> Iterator[None]:
    """Attach fields such as job_id or entity_kind to every record in scope."""
    merged = {**_run_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _run_context.set(merged)
    try:
        yield
    finally:
        _run_context.reset(token)


@contextmanager
def log_operation(operation: str, logger: logging.Logger | None = None, **fields: Any) -> Iterator[None]:
    """Log start, completion (with duration) or failure of a block."""
    logger = logger or get_logger()
    started = time.monotonic()
    logger.info(f"{operation} started", extra={"operation": operation, **fields})
    try:
        yield
    except Exception as exc:
        logger.error(
            f"{operation} failed: {exc}",
            extra={
                "operation": operation,
                "duration_seconds": round(time.monotonic() - started, 3),
                "error_type": type(exc).__name__,
                **fields,
            },
            exc_info=True,
        )
        raise
    logger.info(
        f"{operation} finished",
        extra={"operation": operation, "duration_seconds": round(time.monotonic() - started, 3), **fields},
    )
