import atexit
import contextlib
import threading
from typing import TYPE_CHECKING, Any, Optional

from sqlbind.core.tags import TagAllocator
from sqlbind.core.transaction import TransactionStack
from sqlbind.exceptions import ImproperConfigurationError, UnknownConnectionError
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.config import DatabaseConfig
    from sqlbind.protocols import Connection
    from sqlbind.typing import ErrorCallback

__all__ = ("SQLBind", "get_default_service", "set_default_service")

logger = get_logger("base")


class SQLBind:
    """Process-wide service shared by every session.

    It owns the connection registry (one configuration and one connection per
    identifier), the transaction stack of each connection, the tag allocator
    and the wrap-mode error callback.
    """

    __slots__ = ("_configs", "_default_id", "_error_callback", "_lock", "_transactions", "allocator")

    def __init__(self, allocator: Optional[TagAllocator] = None) -> None:
        self._configs: dict[str, DatabaseConfig[Any]] = {}
        self._transactions: dict[str, TransactionStack] = {}
        self._default_id: Optional[str] = None
        self._error_callback: Optional[ErrorCallback] = None
        self._lock = threading.RLock()
        self.allocator = allocator or TagAllocator()
        atexit.register(self._cleanup_connections)

    def _cleanup_connections(self) -> None:
        """Close every open connection at program exit."""
        for config in self._configs.values():
            with contextlib.suppress(Exception):
                config.close()

    # -- Connection registry --
    def add_connection(self, cnx_id: str, config: "DatabaseConfig[Any]", is_default: bool = False) -> None:
        """Register ``config`` under ``cnx_id``.

        The first registered connection becomes the default one.

        Raises:
            ImproperConfigurationError: ``cnx_id`` is already registered.
        """
        with self._lock:
            if cnx_id in self._configs:
                msg = f"Connection {cnx_id!r} is already registered"
                raise ImproperConfigurationError(msg)
            self._configs[cnx_id] = config
            self._transactions[cnx_id] = TransactionStack(self.allocator)
            if is_default or self._default_id is None:
                self._default_id = cnx_id
        logger.debug("Registered connection %s (default=%s)", cnx_id, self._default_id == cnx_id)

    def remove_connection(self, cnx_id: Optional[str] = None) -> None:
        """Close and forget the connection registered under ``cnx_id``, the default one when ``None``."""
        with self._lock:
            resolved = self.resolve_id(cnx_id)
            config = self._configs.pop(resolved)
            self._transactions.pop(resolved, None)
            if self._default_id == resolved:
                self._default_id = None
        config.close()

    def set_default_connection(self, cnx_id: str) -> None:
        self._default_id = self.resolve_id(cnx_id)

    @property
    def default_connection_id(self) -> Optional[str]:
        return self._default_id

    @property
    def connection_ids(self) -> "tuple[str, ...]":
        return tuple(self._configs)

    def resolve_id(self, cnx_id: Optional[str] = None) -> str:
        """Return ``cnx_id``, or the default identifier when it is ``None``.

        Raises:
            UnknownConnectionError: Nothing is registered under the identifier.
        """
        resolved = self._default_id if cnx_id is None else cnx_id
        if resolved is None or resolved not in self._configs:
            raise UnknownConnectionError(resolved)
        return resolved

    def get_config(self, cnx_id: Optional[str] = None) -> "DatabaseConfig[Any]":
        return self._configs[self.resolve_id(cnx_id)]

    def get_connection(self, cnx_id: Optional[str] = None) -> "Connection":
        """Return the shared connection of ``cnx_id``, connecting on first use."""
        with self._lock:
            return self._configs[self.resolve_id(cnx_id)].get_connection()

    def get_transaction(self, cnx_id: Optional[str] = None) -> TransactionStack:
        return self._transactions[self.resolve_id(cnx_id)]

    # -- Error callback --
    def set_error_callback(self, callback: "Optional[ErrorCallback]") -> None:
        """Install the callback receiving backend failures of sessions in wrap mode."""
        self._error_callback = callback

    @property
    def error_callback(self) -> "Optional[ErrorCallback]":
        return self._error_callback

    def close(self) -> None:
        """Close every open connection and reset the transaction stacks."""
        with self._lock:
            for cnx_id, config in self._configs.items():
                config.close()
                self._transactions[cnx_id] = TransactionStack(self.allocator)

    def __repr__(self) -> str:
        return f"SQLBind(connections={list(self._configs)!r}, default={self._default_id!r})"


_default_service: Optional[SQLBind] = None
_default_lock = threading.Lock()


def get_default_service() -> SQLBind:
    """Return the process-wide service, creating it on first use."""
    global _default_service  # noqa: PLW0603
    with _default_lock:
        if _default_service is None:
            _default_service = SQLBind()
        return _default_service


def set_default_service(service: Optional[SQLBind]) -> None:
    """Replace the process-wide service; ``None`` drops it so the next access builds a new one."""
    global _default_service  # noqa: PLW0603
    with _default_lock:
        _default_service = service
