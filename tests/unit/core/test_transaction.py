"""Tests for sqlbind.core.transaction."""

from unittest.mock import MagicMock, call

import pytest

from sqlbind.core.tags import TagAllocator
from sqlbind.core.transaction import TransactionStack, TransactionState, savepoint_identifier
from sqlbind.exceptions import InvalidValueError


@pytest.fixture
def connection() -> MagicMock:
    connection = MagicMock()
    connection.dialect = "mysql"
    return connection


@pytest.fixture
def stack() -> TransactionStack:
    return TransactionStack(TagAllocator())


@pytest.mark.parametrize(
    ("dialect", "expected"),
    [("mysql", "`s1`"), ("sqlite", '"s1"'), ("postgres", '"s1"')],
    ids=["mysql", "sqlite", "postgres"],
)
def test_savepoint_identifier(dialect: str, expected: str) -> None:
    assert savepoint_identifier("s1", dialect) == expected


@pytest.mark.parametrize("name", ["", "   ", None], ids=["empty", "blank", "none"])
def test_savepoint_identifier_rejects_empty(name: str) -> None:
    with pytest.raises(InvalidValueError):
        savepoint_identifier(name)


def test_start_begins_then_nests(stack: TransactionStack, connection: MagicMock) -> None:
    assert stack.start(connection) is None
    assert stack.state is TransactionState.IN_TRANSACTION
    connection.begin.assert_called_once_with()

    name = stack.start(connection)

    assert name is not None
    assert name.startswith("sp_")
    assert stack.savepoints == (name,)
    connection.begin.assert_called_once_with()
    connection.exec.assert_called_once_with(f"SAVEPOINT {savepoint_identifier(name, 'mysql')}")


def test_commit_clears_stack(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    stack.create_savepoint(connection, "s1")

    stack.commit(connection)

    connection.commit.assert_called_once_with()
    assert stack.state is TransactionState.IDLE
    assert stack.depth == 0


def test_commit_and_rollback_are_noops_when_idle(stack: TransactionStack, connection: MagicMock) -> None:
    stack.commit(connection)
    stack.rollback(connection)
    stack.rollback_all(connection)

    connection.commit.assert_not_called()
    connection.rollback.assert_not_called()


@pytest.mark.parametrize("savepoints", [0, 1], ids=["no-savepoint", "one-savepoint"])
def test_rollback_shallow_rolls_back_everything(
    stack: TransactionStack, connection: MagicMock, savepoints: int
) -> None:
    stack.start(connection)
    for index in range(savepoints):
        stack.create_savepoint(connection, f"s{index}")

    stack.rollback(connection)

    connection.rollback.assert_called_once_with()
    assert not stack.in_transaction
    assert stack.savepoints == ()


def test_rollback_pops_latest_savepoint(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    stack.create_savepoint(connection, "s1")
    stack.create_savepoint(connection, "s2")

    stack.rollback(connection)

    assert stack.savepoints == ("s1",)
    assert connection.exec.call_args == call("ROLLBACK TO SAVEPOINT `s2`")
    connection.rollback.assert_not_called()


def test_rollback_to_discards_later_savepoints(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    for name in ("s1", "s2", "s3"):
        stack.create_savepoint(connection, name)

    assert stack.rollback_to(connection, "s1")

    assert stack.savepoints == ("s1",)
    assert connection.exec.call_args == call("ROLLBACK TO SAVEPOINT `s1`")


def test_rollback_to_unknown_is_noop(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    stack.create_savepoint(connection, "s1")
    connection.exec.reset_mock()

    assert not stack.rollback_to(connection, "missing")

    connection.exec.assert_not_called()
    assert stack.savepoints == ("s1",)


def test_create_savepoint_begins_when_idle(stack: TransactionStack, connection: MagicMock) -> None:
    stack.create_savepoint(connection, "s1")

    connection.begin.assert_called_once_with()
    assert stack.in_transaction
    assert stack.savepoints == ("s1",)


def test_release(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    for name in ("s1", "s2", "s3"):
        stack.create_savepoint(connection, name)

    assert stack.release(connection, "s2")
    assert not stack.release(connection, "s3")

    assert stack.savepoints == ("s1",)
    assert stack.in_transaction
    connection.rollback.assert_not_called()


def test_rollback_to_uses_latest_duplicate(stack: TransactionStack, connection: MagicMock) -> None:
    stack.start(connection)
    for name in ("a", "b", "a", "c"):
        stack.create_savepoint(connection, name)

    stack.rollback_to(connection, "a")

    assert stack.savepoints == ("a", "b", "a")


def test_auto_names_without_allocator(connection: MagicMock) -> None:
    stack = TransactionStack()
    stack.start(connection)

    assert stack.start(connection) == "sp_1"
    assert stack.start(connection) == "sp_2"
