"""sqlite3 implementation of the ``Connection`` and ``Handle`` protocols.

sqlite has no session variables, so stored routine calls are not available on
this backend; everything else is.
"""

import contextlib
import re
import sqlite3
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final, Optional

from sqlbind.core.coercion import ParamKind
from sqlbind.exceptions import BackendExecutionError
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlbind.protocols import ReferenceProtocol
    from sqlbind.typing import RowList

__all__ = ("SqliteConnection", "SqliteCursor", "SqliteHandle", "handle_backend_errors")

logger = get_logger("adapters.sqlite")

_INT64_MIN: Final = -(2**63)
_INT64_MAX: Final = 2**63 - 1
_NAMED_PARAMETER: Final = re.compile(r"[:@$](\w+)", re.ASCII)


@contextmanager
def handle_backend_errors(sql: Optional[str] = None) -> "Generator[None, None, None]":
    """Wrap sqlite3 exceptions into ``BackendExecutionError``."""
    try:
        yield
    except sqlite3.Error as e:
        msg = f"SQLite database error: {e}"
        raise BackendExecutionError(msg, sql=sql) from e


class SqliteCursor:
    """Context manager for SQLite cursor management."""

    def __init__(self, connection: "sqlite3.Connection") -> None:
        self.connection = connection
        self.cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> "sqlite3.Cursor":
        self.cursor = self.connection.cursor()
        return self.cursor

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.cursor is not None:
            with contextlib.suppress(Exception):
                self.cursor.close()


def _fetch_rows(cursor: "sqlite3.Cursor") -> "RowList":
    if cursor.description is None:
        return []
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _to_sqlite(value: Any, kind: ParamKind) -> Any:
    """Convert a coerced value to the storage class sqlite3 expects for ``kind``."""
    if value is None or kind is ParamKind.NULL:
        return None
    if kind is ParamKind.BOOL:
        return int(bool(value))
    if kind is ParamKind.INT:
        return int(value)
    if kind is ParamKind.BIGINT:
        try:
            number = int(value)
        except ValueError:
            return str(value)
        return number if _INT64_MIN <= number <= _INT64_MAX else str(value)
    if kind is ParamKind.LOB:
        return bytes(value) if not isinstance(value, str) else value.encode("utf-8")
    return str(value)


def _parameter_name(tag: str) -> str:
    """Name sqlite3 expects in the parameter mapping for ``tag``.

    Raises:
        BackendExecutionError: The tag is not a single ``:``, ``@`` or ``$`` marker followed by a name.
    """
    match = _NAMED_PARAMETER.fullmatch(tag)
    if match is None:
        msg = f"{tag!r} is not a sqlite named parameter, use a one-character ':', '@' or '$' tag prefix"
        raise BackendExecutionError(msg)
    return match.group(1)


class SqliteHandle:
    """A statement with named placeholders and its bindings.

    Bindings made with :meth:`bind_param` are read from the reference when the
    handle executes.
    """

    __slots__ = ("_bindings", "_connection", "_rowcount", "_rows", "sql")

    def __init__(self, connection: "sqlite3.Connection", sql: str) -> None:
        self._connection = connection
        self.sql = sql
        self._bindings: dict[str, tuple[str, Any, ParamKind, bool]] = {}
        self._rows: RowList = []
        self._rowcount = -1

    def bind_value(self, tag: str, value: Any, kind: ParamKind) -> None:
        self._bindings[tag] = (_parameter_name(tag), value, kind, False)

    def bind_param(self, tag: str, ref: "ReferenceProtocol", kind: ParamKind) -> None:
        self._bindings[tag] = (_parameter_name(tag), ref, kind, True)

    @property
    def bound_tags(self) -> "tuple[str, ...]":
        return tuple(self._bindings)

    def parameters(self) -> "dict[str, Any]":
        """Current parameter values keyed by placeholder name.

        Raises:
            BackendExecutionError: A bound tag does not appear in the statement.
        """
        parameters: dict[str, Any] = {}
        for tag, (name, value, kind, live) in self._bindings.items():
            if tag not in self.sql:
                msg = f"Bound parameter {tag} does not appear in the statement"
                raise BackendExecutionError(msg, sql=self.sql)
            parameters[name] = _to_sqlite(value.value if live else value, kind)
        return parameters

    def execute(self) -> None:
        parameters = self.parameters()
        with handle_backend_errors(self.sql), SqliteCursor(self._connection) as cursor:
            cursor.execute(self.sql, parameters)
            self._rows = _fetch_rows(cursor)
            self._rowcount = cursor.rowcount

    def fetch_all(self) -> "RowList":
        rows, self._rows = self._rows, []
        return rows

    def row_count(self) -> int:
        return self._rowcount

    def next_result_set(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"SqliteHandle(bindings={len(self._bindings)})"


class SqliteConnection:
    """sqlite3 connection in autocommit mode; transactions are issued explicitly."""

    dialect = "sqlite"

    __slots__ = ("_connection",)

    def __init__(self, connection: "sqlite3.Connection") -> None:
        connection.isolation_level = None
        self._connection = connection

    @property
    def raw(self) -> "sqlite3.Connection":
        return self._connection

    def prepare(self, sql: str) -> SqliteHandle:
        return SqliteHandle(self._connection, sql)

    def query(self, sql: str) -> "RowList":
        with handle_backend_errors(sql), SqliteCursor(self._connection) as cursor:
            cursor.execute(sql)
            return _fetch_rows(cursor)

    def exec(self, sql: str) -> int:
        with handle_backend_errors(sql), SqliteCursor(self._connection) as cursor:
            cursor.execute(sql)
            return cursor.rowcount

    def last_insert_id(self) -> str:
        rows = self.query("SELECT last_insert_rowid() AS id")
        return str(rows[0]["id"])

    def quote(self, value: str) -> str:
        with handle_backend_errors("SELECT quote(?)"), SqliteCursor(self._connection) as cursor:
            cursor.execute("SELECT quote(?)", (value,))
            return str(cursor.fetchone()[0])

    def quote_binary(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    def begin(self) -> None:
        self.exec("BEGIN")

    def commit(self) -> None:
        self.exec("COMMIT")

    def rollback(self) -> None:
        self.exec("ROLLBACK")

    def close(self) -> None:
        self._connection.close()

    def __repr__(self) -> str:
        return f"SqliteConnection(in_transaction={self._connection.in_transaction})"
