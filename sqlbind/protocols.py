"""Runtime-checkable protocols for the collaborators the engine drives.

The engine never talks to a database driver directly. Backends are plugged in
through the ``Connection`` and ``Handle`` protocols below; the sqlite adapter
in :mod:`sqlbind.adapters.sqlite` is the reference implementation.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlbind.core.coercion import ParamKind
    from sqlbind.typing import RowList

__all__ = (
    "Connection",
    "Handle",
    "ReferenceProtocol",
    "SupportsBinaryLiteral",
)


@runtime_checkable
class ReferenceProtocol(Protocol):
    """Live, caller-owned storage read again at bind and execute time."""

    @property
    def value(self) -> Any:
        """Current value of the referenced storage."""
        ...


@runtime_checkable
class Handle(Protocol):
    """A prepared statement obtained from :meth:`Connection.prepare`."""

    def bind_value(self, tag: str, value: Any, kind: "ParamKind") -> None:
        """Bind a one-time copy of ``value`` to the placeholder ``tag``."""
        ...

    def bind_param(self, tag: str, ref: ReferenceProtocol, kind: "ParamKind") -> None:
        """Bind a live alias; ``ref.value`` is read when the handle executes."""
        ...

    def execute(self) -> None:
        """Execute the statement with the current bindings."""
        ...

    def fetch_all(self) -> "RowList":
        """Fetch every remaining row of the current result set."""
        ...

    def row_count(self) -> int:
        """Number of rows affected by the last execution."""
        ...

    def next_result_set(self) -> bool:
        """Advance to the next result set, returning False when there is none."""
        ...


@runtime_checkable
class Connection(Protocol):
    """A backend connection shared by every session bound to one identifier."""

    dialect: str

    def prepare(self, sql: str) -> Handle:
        """Prepare ``sql`` and return a handle ready for binding."""
        ...

    def query(self, sql: str) -> "RowList":
        """Run a plain SQL query and return all rows."""
        ...

    def exec(self, sql: str) -> int:
        """Run a plain SQL statement and return the number of affected rows."""
        ...

    def last_insert_id(self) -> str:
        """Identity assigned by the last insert, as text."""
        ...

    def quote(self, value: str) -> str:
        """Quote ``value`` as a string literal using the backend's own rules."""
        ...

    def begin(self) -> None:
        """Begin a transaction."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


@runtime_checkable
class SupportsBinaryLiteral(Protocol):
    """Connections whose dialect has its own binary literal syntax."""

    def quote_binary(self, value: bytes) -> str:
        """Render ``value`` as a binary literal."""
        ...
