"""SQLite adapter for sqlbind."""

from sqlbind.adapters.sqlite.config import SqliteConfig, SqliteConnectionParams
from sqlbind.adapters.sqlite.driver import SqliteConnection, SqliteCursor, SqliteHandle, handle_backend_errors

__all__ = (
    "SqliteConfig",
    "SqliteConnection",
    "SqliteConnectionParams",
    "SqliteCursor",
    "SqliteHandle",
    "handle_backend_errors",
)
