"""Per-session storage of pending bindings.

Components:
- Ref: mutable cell standing in for caller-owned storage bound by reference
- BindingMode enum: how an entry reaches the backend
- BindingEntry: one injected value, keyed by its tag
- BindingBag: every entry of a session, in registration order
"""

from collections.abc import Iterator
from enum import Enum
from typing import Any, Generic, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeVar

from sqlbind.core.coercion import ParamKind, SemanticType, coerce

__all__ = ("BindingBag", "BindingEntry", "BindingMode", "Ref")

T = TypeVar("T", default=Any)


class Ref(Generic[T]):
    """A mutable cell owned by the caller.

    Injectors that bind by reference keep the cell, not its content, so that a
    value assigned between two executions is the one sent to the backend::

        title = Ref("Alien")
        sql = f"INSERT INTO t_video (video_title) VALUES ({in_ref(title)})"
        for name in ("Alien", "Aliens"):
            title.value = name
            session.insert(sql)
    """

    __slots__ = ("value",)

    def __init__(self, value: "Optional[T]" = None) -> None:
        self.value = value

    def set(self, value: "Optional[T]") -> None:
        self.value = value

    def get(self) -> "Optional[T]":
        return self.value

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


class BindingMode(str, Enum):
    """How an injected value reaches the backend."""

    INLINE_LITERAL = "inline_literal"
    BIND_BY_VALUE = "bind_by_value"
    BIND_BY_REFERENCE = "bind_by_reference"
    INOUT = "inout"
    OUT = "out"


class CoercedView:
    """Read-only view casting the content of a :class:`Ref` on every read.

    This is the alias handed to ``Handle.bind_param``; the backend reads
    ``view.value`` when it executes.
    """

    __slots__ = ("nullable", "ref", "semantic_type")

    def __init__(self, ref: Ref, semantic_type: Optional[SemanticType], nullable: bool) -> None:
        self.ref = ref
        self.semantic_type = semantic_type
        self.nullable = nullable

    @property
    def value(self) -> Any:
        cast, _ = coerce(self.ref.value, self.semantic_type, self.nullable)
        return cast

    def __repr__(self) -> str:
        return f"CoercedView({self.ref!r}, {self.semantic_type!s})"


@mypyc_attr(allow_interpreted_subclasses=False)
class BindingEntry:
    """One injected value.

    Attributes:
        tag: Placeholder issued for the value.
        value: The value copy, or the caller's :class:`Ref` for by-reference entries.
        semantic_type: Semantic type used for casting; ``None`` for OUT entries without a declared type.
        nullable: Whether ``None`` is acceptable.
        mode: Binding mode.
        variable: Backend session variable (INOUT and OUT entries only).
        via: For INOUT entries, how the input value is transported.
        literal: Rendered inline literal, cached once substituted.
    """

    __slots__ = ("literal", "mode", "nullable", "semantic_type", "tag", "value", "variable", "via")

    def __init__(
        self,
        tag: str,
        value: Any,
        semantic_type: Optional[SemanticType],
        mode: BindingMode,
        nullable: bool = False,
        variable: Optional[str] = None,
        via: Optional[BindingMode] = None,
    ) -> None:
        self.tag = tag
        self.value = value
        self.semantic_type = semantic_type
        self.mode = mode
        self.nullable = nullable
        self.variable = variable
        self.via = via
        self.literal: Optional[str] = None

    @property
    def transport(self) -> BindingMode:
        """Binding mode used for the entry's input value."""
        if self.mode is BindingMode.INOUT and self.via is not None:
            return self.via
        return self.mode

    @property
    def is_reference(self) -> bool:
        return self.transport is BindingMode.BIND_BY_REFERENCE

    @property
    def is_consumed(self) -> bool:
        return self.literal is not None

    def current_value(self) -> Any:
        """Raw value as of now; by-reference entries read the caller's cell."""
        if self.is_reference:
            return self.value.value
        return self.value

    def coerce(self) -> "tuple[Any, ParamKind]":
        return coerce(self.current_value(), self.semantic_type, self.nullable)

    def view(self) -> CoercedView:
        return CoercedView(self.value, self.semantic_type, self.nullable)

    def __repr__(self) -> str:
        target = f", variable={self.variable!r}" if self.variable else ""
        return f"BindingEntry({self.tag!r}, mode={self.transport.value}, type={self.semantic_type!s}{target})"


class BindingBag:
    """Every binding entry of a session, in registration order.

    IN entries are keyed by tag. INOUT and OUT entries form the OUT-parameter
    map and are keyed by their session variable, so declaring a variable again
    replaces the earlier declaration.
    """

    __slots__ = ("_entries", "_variables")

    def __init__(self) -> None:
        self._entries: dict[str, BindingEntry] = {}
        self._variables: dict[str, BindingEntry] = {}

    def add(self, entry: BindingEntry) -> BindingEntry:
        if entry.variable is not None:
            self._variables.pop(entry.variable, None)
            self._variables[entry.variable] = entry
        else:
            self._entries[entry.tag] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries) + len(self._variables)

    def __iter__(self) -> Iterator[BindingEntry]:
        yield from self._entries.values()
        yield from self._variables.values()

    def __contains__(self, tag: object) -> bool:
        return tag in self._entries or any(entry.tag == tag for entry in self._variables.values())

    def get(self, tag: str) -> Optional[BindingEntry]:
        return self._entries.get(tag)

    def entries(self, mode: BindingMode) -> list[BindingEntry]:
        """IN entries registered with ``mode``."""
        return [entry for entry in self._entries.values() if entry.mode is mode]

    def bound_entries(self) -> list[BindingEntry]:
        """IN entries that need a prepared handle."""
        return [
            entry
            for entry in self._entries.values()
            if entry.mode in {BindingMode.BIND_BY_VALUE, BindingMode.BIND_BY_REFERENCE}
        ]

    def inout_entries(self) -> list[BindingEntry]:
        return [entry for entry in self._variables.values() if entry.mode is BindingMode.INOUT]

    def out_entries(self) -> list[BindingEntry]:
        """INOUT and OUT entries, in declaration order."""
        return list(self._variables.values())

    def has_references(self) -> bool:
        return any(entry.is_reference for entry in self)

    def has_out_references(self) -> bool:
        return any(entry.is_reference for entry in self._variables.values())

    def count_tokens(self) -> int:
        return len(self)

    def clear(self) -> None:
        self._entries.clear()
        self._variables.clear()

    def clear_out_parameters(self) -> None:
        self._variables.clear()

    def __repr__(self) -> str:
        return f"BindingBag(entries={len(self._entries)}, variables={len(self._variables)})"
