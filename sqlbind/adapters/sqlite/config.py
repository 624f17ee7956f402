"""SQLite database configuration."""

import sqlite3
from typing import Any, ClassVar, Optional, TypedDict, Union

from typing_extensions import NotRequired

from sqlbind.adapters.sqlite.driver import SqliteConnection, handle_backend_errors
from sqlbind.config import DatabaseConfig
from sqlbind.utils.logging import get_logger

logger = get_logger("adapters.sqlite.config")


class SqliteConnectionParams(TypedDict, total=False):
    """SQLite connection parameters."""

    database: NotRequired[str]
    timeout: NotRequired[float]
    detect_types: NotRequired[int]
    check_same_thread: NotRequired[bool]
    cached_statements: NotRequired[int]
    uri: NotRequired[bool]


__all__ = ("SqliteConfig", "SqliteConnectionParams")


class SqliteConfig(DatabaseConfig[SqliteConnection]):
    """SQLite configuration.

    Connections are always opened in autocommit mode so that transactions are
    driven by the session's transaction verbs only.
    """

    __slots__ = ("connection_config",)

    dialect: "ClassVar[str]" = "sqlite"

    def __init__(self, connection_config: "Optional[Union[SqliteConnectionParams, dict[str, Any]]]" = None) -> None:
        """Initialize SQLite configuration.

        Args:
            connection_config: Arguments of :func:`sqlite3.connect`; an in-memory
                database when ``database`` is missing.
        """
        super().__init__()
        params: dict[str, Any] = dict(connection_config or {})
        params.setdefault("database", ":memory:")
        database_path = str(params["database"])
        if database_path.startswith("file:") and not params.get("uri"):
            logger.debug("Database URI detected (%s) but uri=True not set, enabling URI mode", database_path)
            params["uri"] = True
        self.connection_config = params

    def create_connection(self) -> SqliteConnection:
        """Create a SQLite connection in autocommit mode."""
        with handle_backend_errors():
            raw = sqlite3.connect(**self.connection_config, isolation_level=None)
        return SqliteConnection(raw)
