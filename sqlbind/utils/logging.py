# ruff: noqa: PLR6301
"""Logging helpers for sqlbind.

Every logger lives under the ``sqlbind`` namespace. Records emitted while a
session runs a statement carry the identifier of the connection in use, and
:class:`StructuredFormatter` renders them as one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Final

from sqlbind._serialization import encode_json

if TYPE_CHECKING:
    from collections.abc import Generator
    from logging import LogRecord
    from typing import TextIO

__all__ = (
    "DEFAULT_MAX_SQL_LENGTH",
    "ConnectionContextFilter",
    "StructuredFormatter",
    "configure_logging",
    "connection_context",
    "connection_id_var",
    "get_connection_id",
    "get_logger",
    "log_with_context",
)

ROOT_LOGGER_NAME: Final = "sqlbind"
DEFAULT_MAX_SQL_LENGTH: Final = 500
SIMPLE_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

connection_id_var: ContextVar[str | None] = ContextVar("sqlbind_connection_id", default=None)


def get_connection_id() -> str | None:
    """Return the connection identifier of the statement being run, if any."""
    return connection_id_var.get()


@contextmanager
def connection_context(cnx_id: str | None) -> Generator[None, None, None]:
    """Tag every record logged inside the block with ``cnx_id``.

    Args:
        cnx_id: Identifier of the registered connection in use.

    Yields:
        Nothing; the previous identifier is restored on exit.
    """
    token = connection_id_var.set(cnx_id)
    try:
        yield
    finally:
        connection_id_var.reset(token)


class ConnectionContextFilter(logging.Filter):
    """Copy the current connection identifier onto each record."""

    def filter(self, record: LogRecord) -> bool:
        if cnx_id := get_connection_id():
            record.cnx_id = cnx_id  # type: ignore[attr-defined]
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter aware of the ``verb``/``sql`` context fields.

    Long statements are cut to ``max_sql_length`` characters so a bulk insert
    does not flood the log.
    """

    def __init__(
        self, fmt: str | None = None, datefmt: str | None = None, max_sql_length: int = DEFAULT_MAX_SQL_LENGTH
    ) -> None:
        super().__init__(fmt, datefmt)
        self.max_sql_length = max_sql_length

    def _truncate(self, sql: str) -> str:
        if len(sql) <= self.max_sql_length:
            return sql
        return f"{sql[: self.max_sql_length]}..."

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        cnx_id = getattr(record, "cnx_id", None) or get_connection_id()
        if cnx_id:
            entry["cnx_id"] = cnx_id

        entry.update(getattr(record, "extra_fields", {}))
        if isinstance(entry.get("sql"), str):
            entry["sql"] = self._truncate(entry["sql"])

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return encode_json(entry)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``sqlbind`` namespace.

    Args:
        name: Dotted name, relative to ``sqlbind`` unless it already starts
            with it. ``None`` returns the package root logger.

    Returns:
        The logger, with a :class:`ConnectionContextFilter` attached.
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    logger = logging.getLogger(name)
    if not any(isinstance(f, ConnectionContextFilter) for f in logger.filters):
        logger.addFilter(ConnectionContextFilter())
    return logger


def configure_logging(
    level: str | int = "INFO",
    format_style: str = "structured",
    stream: TextIO | None = None,
    max_sql_length: int = DEFAULT_MAX_SQL_LENGTH,
    extra_handlers: list[logging.Handler] | None = None,
) -> None:
    """Install a single console handler on the ``sqlbind`` root logger.

    Args:
        level: Level name or number.
        format_style: ``"structured"`` for JSON lines, anything else for plain text.
        stream: Output stream, ``sys.stdout`` by default.
        max_sql_length: SQL truncation length of the structured formatter.
        extra_handlers: Handlers added after the console handler.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()) if isinstance(level, str) else level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if format_style == "structured":
        handler.setFormatter(StructuredFormatter(max_sql_length=max_sql_length))
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))
    root_logger.addHandler(handler)

    for extra in extra_handlers or ():
        root_logger.addHandler(extra)

    root_logger.propagate = False
    root_logger.debug("Logging configured (%s, %d handler(s))", format_style, len(root_logger.handlers))


def log_with_context(logger: logging.Logger, level: int, message: str, **extra_fields: Any) -> None:
    """Log ``message`` with ``extra_fields`` merged into the structured output."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, message, extra={"extra_fields": extra_fields})
