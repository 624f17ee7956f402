"""Statement building: literal substitution, preparation and binding.

The builder turns a SQL template full of tags into something the backend can
run. Inline tags become literals in the SQL text; bound tags stay as named
placeholders of a prepared handle. A context that survives between executions
keeps its handle, and only the by-reference parameters whose kind changed are
bound again.
"""

from typing import TYPE_CHECKING, NamedTuple, Optional

from sqlbind.core.bag import BindingMode
from sqlbind.core.coercion import ParamKind, render_literal
from sqlbind.protocols import SupportsBinaryLiteral
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.core.bag import BindingBag, BindingEntry
    from sqlbind.protocols import Connection, Handle

__all__ = ("BuiltStatement", "StatementBuilder", "StatementContext")

logger = get_logger("core.builder")


class BuiltStatement(NamedTuple):
    """Outcome of a build: plain SQL text, or SQL text with a bound handle."""

    sql: str
    handle: "Optional[Handle]"

    @property
    def is_prepared(self) -> bool:
        return self.handle is not None


class StatementContext:
    """Build state retained between executions of one session.

    Attributes:
        template: SQL template given to the last build.
        built_sql: Template after literal substitution.
        prepared_handle: Handle prepared for ``built_sql``, if any.
        last_bound_kind: Parameter kind each by-reference tag was last bound with.
        rebind_count: Number of single-parameter re-binds performed on the handle.
    """

    __slots__ = ("built_sql", "last_bound_kind", "prepared_handle", "rebind_count", "template")

    def __init__(self) -> None:
        self.template: Optional[str] = None
        self.built_sql: Optional[str] = None
        self.prepared_handle: Optional[Handle] = None
        self.last_bound_kind: dict[str, ParamKind] = {}
        self.rebind_count = 0

    @property
    def is_empty(self) -> bool:
        return self.built_sql is None and self.prepared_handle is None

    def clear(self) -> None:
        self.template = None
        self.built_sql = None
        self.prepared_handle = None
        self.last_bound_kind.clear()
        self.rebind_count = 0

    def __repr__(self) -> str:
        return f"StatementContext(prepared={self.prepared_handle is not None}, bound={len(self.last_bound_kind)})"


class StatementBuilder:
    """Builds statements out of a binding bag for one connection."""

    __slots__ = ("bag", "connection", "context")

    def __init__(self, bag: "BindingBag", connection: "Connection", context: Optional[StatementContext] = None) -> None:
        self.bag = bag
        self.connection = connection
        self.context = context or StatementContext()

    def render(self, entry: "BindingEntry") -> str:
        """Render the inline literal of ``entry`` once and cache it on the entry."""
        if entry.literal is None:
            quote_binary = None
            if isinstance(self.connection, SupportsBinaryLiteral):
                quote_binary = self.connection.quote_binary
            entry.literal = render_literal(
                entry.current_value(), entry.semantic_type, entry.nullable, self.connection.quote, quote_binary
            )
        return entry.literal

    def substitute_literals(self, template: str) -> str:
        """Replace every inline tag of ``template`` by its literal.

        Tags absent from the text are left alone, so building a string that was
        already built is a no-op.
        """
        sql = template
        substituted = 0
        for entry in self.bag.entries(BindingMode.INLINE_LITERAL):
            if entry.tag in sql:
                sql = sql.replace(entry.tag, self.render(entry))
                substituted += 1
        if substituted:
            logger.debug("Substituted %d inline literal(s)", substituted)
        return sql

    def build(self, template: str) -> BuiltStatement:
        """Build ``template`` for immediate execution.

        Args:
            template: SQL text containing zero or more tags.

        Returns:
            Plain SQL when no parameter needs binding, otherwise SQL with a
            handle whose parameters are all bound.
        """
        context = self.context
        sql = self.substitute_literals(template)
        context.template = template

        bound = self.bag.bound_entries()
        if not bound:
            context.built_sql = sql
            context.prepared_handle = None
            context.last_bound_kind.clear()
            return BuiltStatement(sql, None)

        if context.prepared_handle is None or context.built_sql != sql:
            context.built_sql = sql
            context.prepared_handle = self._prepare_and_bind(sql, bound)
        else:
            self._rebind_changed(context.prepared_handle, bound)
        return BuiltStatement(sql, context.prepared_handle)

    def _prepare_and_bind(self, sql: str, bound: "list[BindingEntry]") -> "Handle":
        context = self.context
        context.last_bound_kind.clear()
        handle = self.connection.prepare(sql)
        for entry in bound:
            if entry.mode is BindingMode.BIND_BY_VALUE:
                value, kind = entry.coerce()
                handle.bind_value(entry.tag, value, kind)
            else:
                _, kind = entry.coerce()
                handle.bind_param(entry.tag, entry.view(), kind)
                context.last_bound_kind[entry.tag] = kind
        logger.debug("Prepared statement with %d bound parameter(s)", len(bound))
        return handle

    def _rebind_changed(self, handle: "Handle", bound: "list[BindingEntry]") -> None:
        context = self.context
        for entry in bound:
            if entry.mode is not BindingMode.BIND_BY_REFERENCE:
                continue
            _, kind = entry.coerce()
            previous = context.last_bound_kind.get(entry.tag)
            if previous is kind:
                continue
            handle.bind_param(entry.tag, entry.view(), kind)
            # An entry registered after preparation is bound for the first time.
            if previous is not None:
                context.rebind_count += 1
                logger.debug("Re-bound %s: %s -> %s", entry.tag, previous.value, kind.value)
            context.last_bound_kind[entry.tag] = kind
