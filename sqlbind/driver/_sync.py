"""Synchronous session: injectors, execution verbs and transaction verbs.

A session owns the binding bag filled by its injectors and the statement
context retained between executions. Every verb follows the same path::

    build -> run -> shape -> auto-reset on success

Backend failures are either raised (throw mode) or handed to the process-wide
error callback (wrap mode). Validation failures always propagate.
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar, Union

from sqlbind.base import get_default_service
from sqlbind.config import SessionConfig
from sqlbind.core.bag import BindingBag, BindingMode
from sqlbind.core.builder import StatementBuilder, StatementContext
from sqlbind.core.coercion import cast_out_value
from sqlbind.core.injectors import InjectorFactory
from sqlbind.core.result import CallResult
from sqlbind.exceptions import BackendExecutionError, SQLBindError, wrap_backend_errors
from sqlbind.utils.logging import connection_context, get_logger, log_with_context

if TYPE_CHECKING:
    from sqlbind.base import SQLBind
    from sqlbind.core.bag import BindingEntry
    from sqlbind.core.coercion import SemanticType
    from sqlbind.core.injectors import InInjector, InOutInjector, OutInjector
    from sqlbind.core.transaction import TransactionStack
    from sqlbind.protocols import Connection, Handle
    from sqlbind.typing import ErrorCallback, RowList

__all__ = ("Session",)

logger = get_logger("driver")

ResultT = TypeVar("ResultT")


class Session:
    """Builds and runs statements against one registered connection.

    Example::

        session = Session()
        in_ = session.injector_in_literal()
        session.insert(f"INSERT INTO t_item (stock) VALUES ({in_(10, 'int')})")
        rows = session.select("SELECT stock FROM t_item")
    """

    __slots__ = ("_bag", "_cnx_id", "_config", "_context", "_error_result", "_factory", "_has_failed", "_service")

    def __init__(
        self,
        cnx_id: Optional[str] = None,
        config: Optional[SessionConfig] = None,
        service: "Optional[SQLBind]" = None,
    ) -> None:
        """Bind a new session to a registered connection.

        Args:
            cnx_id: Connection identifier; the default connection when ``None``.
            config: Session behavior; a private copy is kept.
            service: Service holding the connection registry; the process-wide one when ``None``.

        Raises:
            UnknownConnectionError: Nothing is registered under ``cnx_id``.
        """
        self._service = service or get_default_service()
        self._cnx_id = self._service.resolve_id(cnx_id)
        self._config = replace(config) if config is not None else SessionConfig()
        self._bag = BindingBag()
        self._context = StatementContext()
        self._factory = InjectorFactory(self._bag, self._service.allocator, self._config.tag_prefix)
        self._has_failed = False
        self._error_result: Any = None

    # -- Connection --
    @property
    def cnx_id(self) -> str:
        return self._cnx_id

    @property
    def connection(self) -> "Connection":
        return self._service.get_connection(self._cnx_id)

    @property
    def transaction(self) -> "TransactionStack":
        return self._service.get_transaction(self._cnx_id)

    @property
    def in_transaction(self) -> bool:
        return self.transaction.in_transaction

    def set_current_connection(self, cnx_id: Optional[str] = None) -> None:
        """Switch the session to another registered connection.

        The retained statement context belongs to the previous connection and is dropped.
        """
        self._cnx_id = self._service.resolve_id(cnx_id)
        self._context.clear()

    # -- Injectors --
    def injector_in_literal(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InInjector":
        return self._factory.in_literal(locked_type)

    def injector_in_by_value(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InInjector":
        return self._factory.in_by_value(locked_type)

    def injector_in_by_reference(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InInjector":
        return self._factory.in_by_reference(locked_type)

    def injector_inout_literal(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InOutInjector":
        return self._factory.inout_literal(locked_type)

    def injector_inout_by_value(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InOutInjector":
        return self._factory.inout_by_value(locked_type)

    def injector_inout_by_reference(self, locked_type: "Union[SemanticType, str, None]" = None) -> "InOutInjector":
        return self._factory.inout_by_reference(locked_type)

    def injector_out(self, locked_type: "Union[SemanticType, str, None]" = None) -> "OutInjector":
        return self._factory.out(locked_type)

    def __call__(
        self, value: Any, semantic_type: "Union[SemanticType, str, None]" = None, nullable: bool = False
    ) -> str:
        """Inject ``value`` as an inline literal; shortcut for ``injector_in_literal()(...)``."""
        return self._factory.in_literal()(value, semantic_type, nullable)

    # -- Session state --
    @property
    def has_failed(self) -> bool:
        return self._has_failed

    @property
    def error_result(self) -> Any:
        """Return value of the error callback for the last intercepted failure."""
        return self._error_result

    @property
    def auto_reset(self) -> bool:
        return self._config.auto_reset

    @property
    def throw(self) -> bool:
        return self._config.throw

    @property
    def context(self) -> StatementContext:
        return self._context

    def count_tokens(self) -> int:
        """Number of pending binding entries, OUT parameters included."""
        return self._bag.count_tokens()

    def set_auto_reset(self, auto_reset: bool = True) -> None:
        self._config.auto_reset = auto_reset

    def set_throw_mode(self, throw: bool = True, callback: "Optional[ErrorCallback]" = None) -> None:
        """Choose between raising backend failures and handing them to a callback.

        Args:
            throw: Raise backend failures when true.
            callback: Process-wide callback installed for wrap mode, kept as is when ``None``.
        """
        self._config.throw = throw
        if callback is not None:
            self._service.set_error_callback(callback)

    def reset(self) -> None:
        """Drop every pending binding and the retained statement context."""
        self._bag.clear()
        self._context.clear()
        self._has_failed = False
        self._error_result = None

    def _auto_reset(self) -> None:
        if not self._config.auto_reset or self._has_failed:
            return
        if self._bag.has_references():
            logger.debug("Auto-reset skipped, by-reference bindings are pending")
            return
        self._bag.clear()
        self._context.clear()
        logger.debug("Session auto-reset")

    # -- Dispatch --
    def _intercept(self, verb: str, sql: str, operation: "Callable[[Connection], ResultT]") -> "Optional[ResultT]":
        log_with_context(logger, logging.DEBUG, f"Running {verb}", verb=verb, sql=sql, tokens=self.count_tokens())
        try:
            with connection_context(self._cnx_id), wrap_backend_errors(sql):
                return operation(self.connection)
        except BackendExecutionError as exc:
            self._has_failed = True
            log_with_context(
                logger, logging.ERROR, f"{verb} failed: {exc.detail}", verb=verb, sql=sql, cnx_id=self._cnx_id
            )
            if self._config.throw:
                raise
            callback = self._service.error_callback
            self._error_result = callback(exc, sql, verb) if callback is not None else None
            return None
        except SQLBindError:
            self._has_failed = True
            raise

    def _run(self, verb: str, sql: str, operation: "Callable[[Connection], ResultT]") -> "Optional[ResultT]":
        result = self._intercept(verb, sql, operation)
        self._auto_reset()
        return result

    def _build(self, connection: "Connection", sql: str) -> "tuple[str, Optional[Handle]]":
        built = StatementBuilder(self._bag, connection, self._context).build(sql)
        return built.sql, built.handle

    def select(self, sql: str) -> "Optional[RowList]":
        """Run a query and return every row as a mapping of field name to value."""

        def operation(connection: "Connection") -> "RowList":
            built_sql, handle = self._build(connection, sql)
            if handle is None:
                return connection.query(built_sql)
            handle.execute()
            return handle.fetch_all()

        return self._run("select", sql, operation)

    def insert(self, sql: str) -> Optional[str]:
        """Run an insert and return the identity assigned by the backend, as text."""

        def operation(connection: "Connection") -> str:
            built_sql, handle = self._build(connection, sql)
            if handle is None:
                connection.exec(built_sql)
            else:
                handle.execute()
            return connection.last_insert_id()

        return self._run("insert", sql, operation)

    def _affected_rows(self, verb: str, sql: str) -> Optional[int]:
        def operation(connection: "Connection") -> int:
            built_sql, handle = self._build(connection, sql)
            if handle is None:
                return connection.exec(built_sql)
            handle.execute()
            return handle.row_count()

        return self._run(verb, sql, operation)

    def update(self, sql: str) -> Optional[int]:
        """Run an update and return the number of affected rows."""
        return self._affected_rows("update", sql)

    def delete(self, sql: str) -> Optional[int]:
        """Run a delete and return the number of affected rows."""
        return self._affected_rows("delete", sql)

    def execute(self, sql: str) -> Optional[int]:
        """Run any other statement and return the number of affected rows."""
        return self._affected_rows("execute", sql)

    # -- Stored routines --
    def _assign_inout(self, connection: "Connection", entries: "list[BindingEntry]") -> None:
        """Initialise every INOUT session variable with one ``SET`` statement."""
        builder = StatementBuilder(self._bag, connection)
        assignments = []
        bound = []
        for entry in entries:
            if entry.transport is BindingMode.INLINE_LITERAL:
                assignments.append(f"{entry.variable} = {builder.render(entry)}")
            else:
                assignments.append(f"{entry.variable} = {entry.tag}")
                bound.append(entry)
        sql = f"SET {', '.join(assignments)}"
        if not bound:
            connection.exec(sql)
            return
        handle = connection.prepare(sql)
        for entry in bound:
            value, kind = entry.coerce()
            if entry.is_reference:
                handle.bind_param(entry.tag, entry.view(), kind)
            else:
                handle.bind_value(entry.tag, value, kind)
        handle.execute()

    def _fetch_out(self, connection: "Connection", entries: "list[BindingEntry]") -> "dict[str, Any]":
        rows = connection.query(f"SELECT {', '.join(str(entry.variable) for entry in entries)}")
        values = list(rows[0].values()) if rows else [None] * len(entries)
        return {
            str(entry.variable): cast_out_value(value, entry.semantic_type)
            for entry, value in zip(entries, values)
        }

    def call(self, sql: str, is_query: bool = True) -> Optional[CallResult]:
        """Call a stored routine.

        INOUT variables are assigned first, then the call runs through a
        prepared handle. OUT and INOUT values are fetched afterwards and exposed
        under ``result["out"]``, cast to their declared types.
        OUT parameters are dropped after a successful call unless an INOUT
        variable binds by reference. A failed call keeps them until :meth:`reset`.

        Args:
            sql: The ``CALL`` statement, OUT and INOUT variables spliced in.
            is_query: Whether the routine returns row sets to fetch.

        Returns:
            The row sets and OUT parameters, ``None`` when a failure was intercepted.
        """

        def operation(connection: "Connection") -> CallResult:
            inout = self._bag.inout_entries()
            if inout:
                self._assign_inout(connection, inout)
            built_sql, handle = self._build(connection, sql)
            if handle is None:
                handle = connection.prepare(built_sql)
            handle.execute()
            result_sets: list[RowList] = []
            if is_query:
                result_sets.append(handle.fetch_all())
                while handle.next_result_set():
                    result_sets.append(handle.fetch_all())
            out_entries = self._bag.out_entries()
            out = self._fetch_out(connection, out_entries) if out_entries else None
            return CallResult(result_sets, out)

        result = self._run("call", sql, operation)
        if result is not None and not self._bag.has_out_references():
            self._bag.clear_out_parameters()
        return result

    # -- Transactions --
    def start_transaction(self) -> Optional[str]:
        """Begin a transaction, or push an automatic savepoint inside one.

        Returns:
            The name of the pushed savepoint, ``None`` when a transaction began.
        """
        return self._intercept("start_transaction", "BEGIN", self.transaction.start)

    def commit(self) -> None:
        self._intercept("commit", "COMMIT", self.transaction.commit)

    def rollback(self) -> None:
        """Undo the innermost transaction level."""
        self._intercept("rollback", "ROLLBACK", self.transaction.rollback)

    def rollback_all(self) -> None:
        """Roll back the whole transaction whatever its depth."""
        self._intercept("rollback_all", "ROLLBACK", self.transaction.rollback_all)

    def rollback_to(self, name: str) -> bool:
        result = self._intercept(
            "rollback_to", f"ROLLBACK TO SAVEPOINT {name}", lambda cnx: self.transaction.rollback_to(cnx, name)
        )
        return bool(result)

    def create_savepoint(self, name: str) -> None:
        self._intercept(
            "create_savepoint", f"SAVEPOINT {name}", lambda cnx: self.transaction.create_savepoint(cnx, name)
        )

    def release(self, name: str) -> bool:
        result = self._intercept(
            "release", f"RELEASE SAVEPOINT {name}", lambda cnx: self.transaction.release(cnx, name)
        )
        return bool(result)

    def __repr__(self) -> str:
        return f"Session(cnx_id={self._cnx_id!r}, tokens={self.count_tokens()}, failed={self._has_failed})"
