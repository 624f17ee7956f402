from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Optional

from sqlbind.core.tags import DEFAULT_TAG_PREFIX
from sqlbind.typing import ConnectionT
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = ("DatabaseConfig", "SessionConfig")

logger = get_logger("config")


@dataclass
class SessionConfig:
    """Behavior of a :class:`~sqlbind.driver.Session`.

    Attributes:
        auto_reset: Clear the session after each successful execution when no
            by-reference binding is pending.
        throw: Raise backend failures; when false they are handed to the
            process-wide error callback instead.
        tag_prefix: Placeholder marker put in front of every tag. It must be the
            named-parameter marker of the backend.
    """

    auto_reset: bool = True
    throw: bool = True
    tag_prefix: str = DEFAULT_TAG_PREFIX


class DatabaseConfig(ABC, Generic[ConnectionT]):
    """Base class for backend configurations.

    A configuration opens at most one connection, created on first use and
    shared by every session bound to the configuration.
    """

    __slots__ = ("_connection",)
    dialect: "ClassVar[str]" = ""

    def __init__(self) -> None:
        self._connection: Optional[ConnectionT] = None

    @abstractmethod
    def create_connection(self) -> ConnectionT:
        """Create and return a new backend connection."""
        raise NotImplementedError

    def get_connection(self) -> ConnectionT:
        """Return the shared connection, creating it on first use."""
        if self._connection is None:
            self._connection = self.create_connection()
            logger.debug("Opened %s connection", self.dialect or type(self).__name__)
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @contextmanager
    def provide_connection(self, *args: Any, **kwargs: Any) -> "Generator[ConnectionT, None, None]":
        """Provide a new connection that is closed on exit."""
        connection = self.create_connection()
        try:
            yield connection
        finally:
            self.close_connection(connection)

    def close_connection(self, connection: ConnectionT) -> None:
        close = getattr(connection, "close", None)
        if close is not None:
            close()

    def close(self) -> None:
        """Close the shared connection, if it was opened."""
        if self._connection is not None:
            self.close_connection(self._connection)
            self._connection = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(connected={self.is_connected})"
