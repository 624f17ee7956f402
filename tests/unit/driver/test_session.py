"""Tests for the synchronous session: verbs, auto-reset and error interception."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from sqlbind.base import SQLBind
from sqlbind.config import SessionConfig
from sqlbind.core.bag import Ref
from sqlbind.core.coercion import ParamKind
from sqlbind.driver import Session
from sqlbind.exceptions import BackendExecutionError, InvalidValueError, NotNullableError, UnknownConnectionError
from tests.fixtures.recording import RecordingConfig, RecordingConnection


def test_unknown_connection_is_rejected(service: SQLBind) -> None:
    with pytest.raises(UnknownConnectionError):
        Session("missing", service=service)


def test_session_uses_default_connection(session: Session, recording_connection: RecordingConnection) -> None:
    assert session.cnx_id == "main"
    assert session.connection is recording_connection


def test_select_with_inline_literals(session: Session, recording_connection: RecordingConnection) -> None:
    recording_connection.query_results["SELECT stock FROM t_item WHERE id = 1"] = [{"stock": 10}]
    in_ = session.injector_in_literal()

    rows = session.select(f"SELECT stock FROM t_item WHERE id = {in_(1, 'int')}")

    assert rows == [{"stock": 10}]
    assert recording_connection.handles == []


def test_select_with_bound_value(session: Session, recording_connection: RecordingConnection) -> None:
    in_ = session.injector_in_by_value()
    tag = in_(2001, "int")
    sql = f"SELECT * FROM t_video WHERE video_year = {tag}"
    recording_connection.result_sets[sql] = [[{"video_title": "Alien"}]]

    rows = session.select(sql)

    assert rows == [{"video_title": "Alien"}]
    (handle,) = recording_connection.handles
    assert handle.value_binds == [(tag, 2001, ParamKind.INT)]
    assert handle.executions == [{tag: 2001}]


def test_insert_returns_identity_text(session: Session, recording_connection: RecordingConnection) -> None:
    recording_connection.insert_id = "42"

    assert session.insert(f"INSERT INTO t_item (name) VALUES ({session('Alien')})") == "42"
    assert recording_connection.statements == ["INSERT INTO t_item (name) VALUES ('Alien')"]


@pytest.mark.parametrize("verb", ["update", "delete", "execute"], ids=["update", "delete", "execute"])
def test_affected_rows(session: Session, recording_connection: RecordingConnection, verb: str) -> None:
    recording_connection.affected_rows = 3
    in_ = session.injector_in_by_value()

    assert getattr(session, verb)(f"UPDATE t SET a = 1 WHERE b = {in_(2, 'int')}") == 3
    assert len(recording_connection.handles) == 1


def test_auto_reset_clears_by_value_context(session: Session) -> None:
    in_ = session.injector_in_by_value()
    session.execute(f"UPDATE t SET a = {in_(1, 'int')}")

    assert session.count_tokens() == 0
    assert session.context.is_empty


def test_auto_reset_keeps_references(session: Session, recording_connection: RecordingConnection) -> None:
    cell = Ref("Alien")
    sql = f"INSERT INTO t_video (video_title) VALUES ({session.injector_in_by_reference()(cell)})"

    for title in ("Alien", "Aliens", "Alien 3"):
        cell.value = title
        session.insert(sql)

    (handle,) = recording_connection.handles
    assert [list(values.values())[0] for values in handle.executions] == ["Alien", "Aliens", "Alien 3"]
    assert session.count_tokens() == 1
    assert not session.context.is_empty

    session.reset()
    assert session.count_tokens() == 0
    assert session.context.is_empty


def test_reference_rebind_count(session: Session, recording_connection: RecordingConnection) -> None:
    cell: Ref[Any] = Ref(None)
    sql = f"UPDATE t SET qty = {session.injector_in_by_reference('int')(cell, nullable=True)}"

    session.execute(sql)
    cell.value = 5
    session.execute(sql)
    cell.value = None
    session.execute(sql)

    assert session.context.rebind_count == 2
    assert len(recording_connection.handles) == 1


def test_auto_reset_disabled(session: Session) -> None:
    session.set_auto_reset(False)
    session.execute(f"UPDATE t SET a = {session(1, 'int')}")

    assert not session.auto_reset
    assert session.count_tokens() == 1


def test_session_config_is_copied(service: SQLBind) -> None:
    config = SessionConfig(auto_reset=False)
    session = Session(config=config, service=service)
    session.set_auto_reset(True)

    assert session.auto_reset
    assert config.auto_reset is False


def test_throw_mode_raises(session: Session, recording_connection: RecordingConnection) -> None:
    recording_connection.fail_on = "t_broken"
    sql = f"UPDATE t_broken SET a = {session(1, 'int')}"

    with pytest.raises(BackendExecutionError) as exc_info:
        session.execute(sql)

    assert exc_info.value.sql == sql
    assert session.has_failed
    assert session.count_tokens() == 1


def test_wrap_mode_calls_callback(session: Session, recording_connection: RecordingConnection) -> None:
    recording_connection.fail_on = "t_broken"
    callback = MagicMock(return_value="handled")
    session.set_throw_mode(False, callback)
    sql = "DELETE FROM t_broken"

    assert session.delete(sql) is None

    error, failed_sql, verb = callback.call_args.args
    assert isinstance(error, BackendExecutionError)
    assert failed_sql == sql
    assert verb == "delete"
    assert session.error_result == "handled"
    assert session.has_failed


def test_failure_blocks_auto_reset_until_reset(session: Session, recording_connection: RecordingConnection) -> None:
    session.set_throw_mode(False, MagicMock())
    recording_connection.fail_on = "t_broken"
    session.execute("DELETE FROM t_broken")
    recording_connection.fail_on = None

    session.execute(f"UPDATE t SET a = {session(1, 'int')}")
    assert session.count_tokens() == 1

    session.reset()
    assert not session.has_failed
    assert session.error_result is None
    session.execute(f"UPDATE t SET a = {session(1, 'int')}")
    assert session.count_tokens() == 0


def test_validation_errors_propagate_in_wrap_mode(session: Session) -> None:
    callback = MagicMock()
    session.set_throw_mode(False, callback)
    cell = Ref(1)
    sql = f"SELECT {session.injector_in_by_reference('int')(cell)}"
    session.select(sql)

    cell.value = [1, 2]
    with pytest.raises(InvalidValueError):
        session.select(sql)
    with pytest.raises(NotNullableError):
        session(None, "int")
    callback.assert_not_called()


def test_unknown_connection_propagates_in_wrap_mode(session: Session, service: SQLBind) -> None:
    session.set_throw_mode(False, MagicMock())
    service.remove_connection("main")

    with pytest.raises(UnknownConnectionError):
        session.select("SELECT 1")


def test_null_boundary_never_quotes(session: Session, recording_connection: RecordingConnection) -> None:
    session.execute(f"UPDATE t SET name = {session(None, 'str', nullable=True)}")

    assert recording_connection.quoted == []
    assert recording_connection.statements == ["UPDATE t SET name = NULL"]


def test_set_current_connection(service: SQLBind, session: Session) -> None:
    other = RecordingConnection()
    service.add_connection("other", RecordingConfig(other))

    session.set_current_connection("other")
    session.select("SELECT 1")

    assert session.connection is other
    assert other.queries == ["SELECT 1"]
    with pytest.raises(UnknownConnectionError):
        session.set_current_connection("missing")
