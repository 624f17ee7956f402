"""Tests for the sqlite adapter, run against in-memory databases."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from sqlbind.adapters.sqlite import SqliteConfig, SqliteConnection, SqliteHandle, handle_backend_errors
from sqlbind.base import SQLBind
from sqlbind.config import SessionConfig
from sqlbind.core.bag import Ref
from sqlbind.core.coercion import ParamKind
from sqlbind.driver import Session
from sqlbind.exceptions import BackendExecutionError

pytestmark = pytest.mark.sqlite

ITEM_TABLE = "CREATE TABLE t_item (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, stock INTEGER, data BLOB)"


@pytest.fixture
def connection() -> SqliteConnection:
    return SqliteConfig().create_connection()


def test_config_defaults_to_memory() -> None:
    config = SqliteConfig()

    assert config.connection_config["database"] == ":memory:"
    assert not config.is_connected


def test_config_enables_uri_mode() -> None:
    config = SqliteConfig({"database": "file:items?mode=memory"})

    assert config.connection_config["uri"] is True


def test_config_caches_connection() -> None:
    config = SqliteConfig()
    connection = config.get_connection()

    assert config.get_connection() is connection
    config.close()
    assert not config.is_connected


def test_provide_connection_closes() -> None:
    config = SqliteConfig()

    with config.provide_connection() as connection:
        assert connection.query("SELECT 1 AS one") == [{"one": 1}]

    with pytest.raises(BackendExecutionError):
        connection.query("SELECT 1")


def test_connection_is_in_autocommit_mode(connection: SqliteConnection) -> None:
    assert connection.raw.isolation_level is None
    assert connection.dialect == "sqlite"


def test_quote_uses_backend(connection: SqliteConnection) -> None:
    assert connection.quote("O'Brien") == "'O''Brien'"
    assert connection.quote_binary(b"\x01\xab") == "X'01AB'"


def test_handle_binds_named_parameters(connection: SqliteConnection) -> None:
    connection.exec(ITEM_TABLE)
    handle = connection.prepare(
        "INSERT INTO t_item (name, stock) VALUES (:nameAbcdefghijklmno1234, :stockAbcdefghijklm1234)"
    )
    cell = MagicMock(value=7)
    handle.bind_value(":nameAbcdefghijklmno1234", "Alien", ParamKind.STR)
    handle.bind_param(":stockAbcdefghijklm1234", cell, ParamKind.INT)

    handle.execute()
    cell.value = 8
    handle.execute()

    assert handle.row_count() == 1
    assert connection.query("SELECT stock FROM t_item ORDER BY id") == [{"stock": 7}, {"stock": 8}]
    assert connection.last_insert_id() == "2"


def test_handle_rejects_stale_tags(connection: SqliteConnection) -> None:
    handle = connection.prepare("SELECT 1")
    handle.bind_value(":staleAbcdefghijklm1234", 1, ParamKind.INT)

    with pytest.raises(BackendExecutionError):
        handle.execute()


@pytest.mark.parametrize("marker", [":", "@", "$"], ids=["colon", "at", "dollar"])
def test_handle_accepts_sqlite_markers(connection: SqliteConnection, marker: str) -> None:
    tag = f"{marker}stockAbcdefghijklm1234"
    handle = connection.prepare(f"SELECT {tag} AS v")
    handle.bind_value(tag, 5, ParamKind.INT)

    handle.execute()

    assert handle.fetch_all() == [{"v": 5}]


@pytest.mark.parametrize(
    "tag",
    ["::stockAbcdefghijklm1234", "@@stockAbcdefghijklm1234", "stockAbcdefghijklm1234"],
    ids=["double-colon", "double-at", "bare"],
)
def test_handle_rejects_multi_character_prefixes(connection: SqliteConnection, tag: str) -> None:
    handle = connection.prepare(f"SELECT {tag}")

    with pytest.raises(BackendExecutionError):
        handle.bind_value(tag, 5, ParamKind.INT)


@pytest.mark.parametrize(("prefix", "accepted"), [("@", True), ("::", False)], ids=["at", "double-colon"])
def test_session_tag_prefix(sqlite_service: SQLBind, prefix: str, accepted: bool) -> None:
    session = Session(config=SessionConfig(tag_prefix=prefix), service=sqlite_service)
    sql = f"SELECT {session.injector_in_by_value()(7, 'int')} AS v"

    if accepted:
        assert session.select(sql) == [{"v": 7}]
    else:
        with pytest.raises(BackendExecutionError):
            session.select(sql)
        assert session.has_failed


@pytest.mark.parametrize(
    ("value", "kind", "expected"),
    [
        (True, ParamKind.BOOL, 1),
        ("9223372036854775807", ParamKind.BIGINT, 9223372036854775807),
        ("9223372036854775808", ParamKind.BIGINT, "9223372036854775808"),
        ("1.5", ParamKind.BIGINT, "1.5"),
        (b"\x00\x01", ParamKind.LOB, b"\x00\x01"),
        ("1.5", ParamKind.STR, "1.5"),
        (None, ParamKind.NULL, None),
    ],
    ids=["bool", "bigint-fits", "bigint-overflow", "bigint-text", "lob", "str", "null"],
)
def test_handle_converts_kinds(connection: SqliteConnection, value: object, kind: ParamKind, expected: object) -> None:
    handle = SqliteHandle(connection.raw, "SELECT :valueAbcdefghijklm1234 AS v")
    handle.bind_value(":valueAbcdefghijklm1234", value, kind)

    handle.execute()

    assert handle.fetch_all() == [{"v": expected}]
    assert handle.fetch_all() == []
    assert not handle.next_result_set()


def test_handle_backend_errors_wraps_sqlite_errors() -> None:
    with pytest.raises(BackendExecutionError) as exc_info, handle_backend_errors("SELECT nope"):
        raise sqlite3.OperationalError("no such column: nope")

    assert exc_info.value.sql == "SELECT nope"
    assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)


def test_inline_insert_then_select(sqlite_session: Session) -> None:
    sqlite_session.execute(ITEM_TABLE)
    in_ = sqlite_session.injector_in_literal()

    item_id = sqlite_session.insert(f"INSERT INTO t_item (name, stock) VALUES ({in_('Alien')}, {in_(10, 'int')})")
    rows = sqlite_session.select(f"SELECT name, stock FROM t_item WHERE id = {in_(item_id, 'int')}")

    assert item_id == "1"
    assert rows == [{"name": "Alien", "stock": 10}]


@pytest.mark.parametrize(
    "injector",
    ["injector_in_literal", "injector_in_by_value", "injector_in_by_reference"],
    ids=["literal", "by-value", "by-reference"],
)
def test_int_round_trip(sqlite_session: Session, injector: str) -> None:
    sqlite_session.execute(ITEM_TABLE)
    inject = getattr(sqlite_session, injector)("int")
    value = Ref(42) if injector == "injector_in_by_reference" else 42

    sqlite_session.insert(f"INSERT INTO t_item (stock) VALUES ({inject(value)})")
    sqlite_session.reset()

    assert sqlite_session.select("SELECT stock FROM t_item") == [{"stock": 42}]


def test_binary_literal_round_trip(sqlite_session: Session) -> None:
    sqlite_session.execute(ITEM_TABLE)

    sqlite_session.insert(f"INSERT INTO t_item (data) VALUES ({sqlite_session(b'abc', 'binary')})")

    assert sqlite_session.select("SELECT data FROM t_item") == [{"data": b"abc"}]


def test_reference_insert_loop(sqlite_session: Session) -> None:
    sqlite_session.execute(ITEM_TABLE)
    name = Ref[str]()
    sql = f"INSERT INTO t_item (name) VALUES ({sqlite_session.injector_in_by_reference()(name, nullable=True)})"

    ids = []
    for title in ("Alien", None, "Aliens"):
        name.value = title
        ids.append(sqlite_session.insert(sql))
    sqlite_session.reset()

    assert ids == ["1", "2", "3"]
    assert sqlite_session.select("SELECT name FROM t_item ORDER BY id") == [
        {"name": "Alien"},
        {"name": None},
        {"name": "Aliens"},
    ]


def test_savepoint_nesting(sqlite_session: Session) -> None:
    sqlite_session.execute(ITEM_TABLE)
    insert = "INSERT INTO t_item (name) VALUES ({})"

    sqlite_session.start_transaction()
    sqlite_session.insert(insert.format(sqlite_session("A")))
    sqlite_session.create_savepoint("S1")
    sqlite_session.insert(insert.format(sqlite_session("B")))
    sqlite_session.create_savepoint("S2")
    sqlite_session.insert(insert.format(sqlite_session("C")))
    assert sqlite_session.rollback_to("S1")
    sqlite_session.commit()

    assert sqlite_session.select("SELECT name FROM t_item") == [{"name": "A"}]
    assert not sqlite_session.in_transaction


def test_nested_start_and_rollback(sqlite_session: Session) -> None:
    sqlite_session.execute(ITEM_TABLE)
    insert = "INSERT INTO t_item (name) VALUES ({})"

    sqlite_session.start_transaction()
    sqlite_session.insert(insert.format(sqlite_session("A")))
    sqlite_session.start_transaction()
    savepoint = sqlite_session.start_transaction()
    sqlite_session.insert(insert.format(sqlite_session("B")))
    sqlite_session.rollback()

    assert savepoint is not None
    assert sqlite_session.transaction.depth == 1
    sqlite_session.commit()
    assert sqlite_session.select("SELECT name FROM t_item") == [{"name": "A"}]


def test_sessions_share_transaction_state(sqlite_service: object, sqlite_session: Session) -> None:
    other = Session("sqlite", service=sqlite_service)  # type: ignore[arg-type]

    sqlite_session.start_transaction()

    assert other.in_transaction
    other.rollback_all()
    assert not sqlite_session.in_transaction


def test_backend_error_is_wrapped(sqlite_session: Session) -> None:
    with pytest.raises(BackendExecutionError) as exc_info:
        sqlite_session.select("SELECT * FROM t_missing")

    assert "no such table" in str(exc_info.value)
    assert sqlite_session.has_failed
