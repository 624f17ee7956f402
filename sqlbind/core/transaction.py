"""Nested transaction emulation with savepoints.

A backend connection runs one physical transaction at a time. Starting a
transaction while one is open pushes an automatically named savepoint instead,
and an unnamed rollback undoes the innermost level only.

States::

    IDLE --start()--> IN_TRANSACTION --commit()/rollback_all()--> IDLE

The savepoint stack is empty whenever the state is IDLE.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlglot import exp

from sqlbind.exceptions import InvalidValueError
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.core.tags import TagAllocator
    from sqlbind.protocols import Connection

__all__ = ("AUTO_SAVEPOINT_PREFIX", "TransactionStack", "TransactionState", "savepoint_identifier")

logger = get_logger("core.transaction")

AUTO_SAVEPOINT_PREFIX = "sp_"


class TransactionState(str, Enum):
    IDLE = "idle"
    IN_TRANSACTION = "in_transaction"


def savepoint_identifier(name: str, dialect: Optional[str] = None) -> str:
    """Render a savepoint name as a quoted identifier for ``dialect``.

    Raises:
        InvalidValueError: ``name`` is empty or not a string.
    """
    if not isinstance(name, str) or not name.strip():
        msg = "Savepoint names must be non-empty strings"
        raise InvalidValueError(msg, name)
    return exp.to_identifier(name, quoted=True).sql(dialect=dialect)


class TransactionStack:
    """Transaction state and savepoint names of one backend connection."""

    __slots__ = ("_allocator", "_savepoints", "_state")

    def __init__(self, allocator: "Optional[TagAllocator]" = None) -> None:
        self._allocator = allocator
        self._savepoints: list[str] = []
        self._state = TransactionState.IDLE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def in_transaction(self) -> bool:
        return self._state is TransactionState.IN_TRANSACTION

    @property
    def savepoints(self) -> "tuple[str, ...]":
        return tuple(self._savepoints)

    @property
    def depth(self) -> int:
        return len(self._savepoints)

    def _auto_name(self) -> str:
        if self._allocator is None:
            return f"{AUTO_SAVEPOINT_PREFIX}{len(self._savepoints) + 1}"
        return self._allocator.new_tag(prefix=AUTO_SAVEPOINT_PREFIX)

    def _last_index(self, name: str) -> Optional[int]:
        for index in range(len(self._savepoints) - 1, -1, -1):
            if self._savepoints[index] == name:
                return index
        return None

    def _finish(self) -> None:
        self._savepoints.clear()
        self._state = TransactionState.IDLE

    def start(self, connection: "Connection") -> Optional[str]:
        """Begin a transaction, or push a savepoint when one is already open.

        Returns:
            The name of the pushed savepoint, ``None`` when a transaction began.
        """
        if not self.in_transaction:
            connection.begin()
            self._state = TransactionState.IN_TRANSACTION
            logger.debug("Transaction started")
            return None
        name = self._auto_name()
        self.create_savepoint(connection, name)
        return name

    def commit(self, connection: "Connection") -> None:
        if not self.in_transaction:
            logger.debug("Commit ignored, no transaction in progress")
            return
        connection.commit()
        self._finish()
        logger.debug("Transaction committed")

    def rollback_all(self, connection: "Connection") -> None:
        if not self.in_transaction:
            logger.debug("Rollback ignored, no transaction in progress")
            return
        connection.rollback()
        self._finish()
        logger.debug("Transaction rolled back")

    def rollback(self, connection: "Connection") -> None:
        """Undo the innermost level.

        With zero or one savepoint the whole transaction is rolled back;
        otherwise the latest savepoint is popped and rolled back to.
        """
        if len(self._savepoints) <= 1:
            self.rollback_all(connection)
            return
        name = self._savepoints[-1]
        connection.exec(f"ROLLBACK TO SAVEPOINT {savepoint_identifier(name, connection.dialect)}")
        self._savepoints.pop()
        logger.debug("Rolled back to savepoint %s", name)

    def rollback_to(self, connection: "Connection", name: str) -> bool:
        """Roll back to ``name`` and forget every later savepoint.

        Returns:
            False, without touching the backend, when ``name`` is not on the stack.
        """
        index = self._last_index(name)
        if index is None:
            logger.debug("Unknown savepoint %s, rollback ignored", name)
            return False
        connection.exec(f"ROLLBACK TO SAVEPOINT {savepoint_identifier(name, connection.dialect)}")
        del self._savepoints[index + 1 :]
        logger.debug("Rolled back to savepoint %s", name)
        return True

    def create_savepoint(self, connection: "Connection", name: str) -> None:
        """Push a named savepoint, beginning a transaction first when idle."""
        identifier = savepoint_identifier(name, connection.dialect)
        if not self.in_transaction:
            self.start(connection)
        connection.exec(f"SAVEPOINT {identifier}")
        self._savepoints.append(name)
        logger.debug("Savepoint %s created (depth %d)", name, len(self._savepoints))

    def release(self, connection: "Connection", name: str) -> bool:
        """Release ``name`` and every later savepoint without rolling back.

        Returns:
            False, without touching the backend, when ``name`` is not on the stack.
        """
        index = self._last_index(name)
        if index is None:
            logger.debug("Unknown savepoint %s, release ignored", name)
            return False
        connection.exec(f"RELEASE SAVEPOINT {savepoint_identifier(name, connection.dialect)}")
        del self._savepoints[index:]
        logger.debug("Savepoint %s released", name)
        return True

    def __repr__(self) -> str:
        return f"TransactionStack(state={self._state.value}, savepoints={self._savepoints!r})"
