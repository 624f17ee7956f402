"""Injectors: the callables that capture values while a SQL template is written.

Every variant funnels into the session's :class:`~sqlbind.core.bag.BindingBag`
and differs only by its binding mode::

    in_ = session.injector_in_by_value()
    sql = f"SELECT * FROM t_video WHERE video_year = {in_(2001, 'int')}"

An injector may be created with a locked semantic type. A locked injector
rejects any other type given at call time, and the lock cannot be set twice.
"""

import re
from typing import TYPE_CHECKING, Any, Final, Optional, Union

from sqlbind.core.bag import BindingEntry, BindingMode, Ref
from sqlbind.core.coercion import SemanticType, coerce, normalize_scalar
from sqlbind.exceptions import InvalidValueError, RedefinitionError

if TYPE_CHECKING:
    from sqlbind.core.bag import BindingBag
    from sqlbind.core.tags import TagAllocator

__all__ = (
    "InInjector",
    "InOutInjector",
    "Injector",
    "InjectorFactory",
    "OutInjector",
    "validate_variable",
)

_VARIABLE_PATTERN: Final = re.compile(r"@[A-Za-z_][A-Za-z0-9_$.]*")


def validate_variable(variable: str) -> str:
    """Check that ``variable`` is a backend session variable such as ``@nb``.

    Raises:
        InvalidValueError: The name would not be a valid session variable.
    """
    if not isinstance(variable, str) or not _VARIABLE_PATTERN.fullmatch(variable):
        msg = f"Invalid session variable name {variable!r}, expected '@' followed by an identifier"
        raise InvalidValueError(msg)
    return variable


class Injector:
    """Common behavior of every injector variant."""

    __slots__ = ("_allocator", "_bag", "locked_type", "mode", "tag_prefix", "via")

    def __init__(
        self,
        bag: "BindingBag",
        allocator: "TagAllocator",
        mode: BindingMode,
        via: Optional[BindingMode] = None,
        locked_type: "Union[SemanticType, str, None]" = None,
        tag_prefix: Optional[str] = None,
    ) -> None:
        self._bag = bag
        self._allocator = allocator
        self.mode = mode
        self.via = via
        self.tag_prefix = tag_prefix
        self.locked_type: Optional[SemanticType] = None
        if locked_type is not None:
            self.lock_type(locked_type)

    @property
    def transport(self) -> BindingMode:
        return self.via if self.via is not None else self.mode

    @property
    def by_reference(self) -> bool:
        return self.transport is BindingMode.BIND_BY_REFERENCE

    def lock_type(self, semantic_type: "Union[SemanticType, str]") -> None:
        """Lock the semantic type used by every later call.

        Raises:
            RedefinitionError: The type is already locked.
        """
        if self.locked_type is not None:
            raise RedefinitionError
        self.locked_type = SemanticType.parse(semantic_type)

    def _resolve_type(self, semantic_type: "Union[SemanticType, str, None]") -> SemanticType:
        if self.locked_type is None:
            return SemanticType.parse(semantic_type)
        if semantic_type is not None and SemanticType.parse(semantic_type) is not self.locked_type:
            msg = f"Cannot redefine the type of an injector locked to {self.locked_type!s}"
            raise RedefinitionError(msg)
        return self.locked_type

    def _capture(self, value: Any, semantic_type: SemanticType, nullable: bool) -> Any:
        """Validate ``value`` for this injector and return what the bag stores."""
        if self.by_reference:
            if not isinstance(value, Ref):
                msg = "Injectors binding by reference expect a Ref cell"
                raise InvalidValueError(msg, value)
            return value
        value = normalize_scalar(value)
        # Fail at injection time rather than at execution time.
        coerce(value, semantic_type, nullable)
        return value

    def __repr__(self) -> str:
        locked = f", locked_type={self.locked_type!s}" if self.locked_type else ""
        return f"{type(self).__name__}(mode={self.transport.value}{locked})"


class InInjector(Injector):
    """IN parameter: inline literal, bound copy or bound reference."""

    __slots__ = ()

    def __call__(
        self, value: Any, semantic_type: "Union[SemanticType, str, None]" = None, nullable: bool = False
    ) -> str:
        """Register ``value`` and return the tag to splice into the SQL template.

        Args:
            value: Scalar value, or a :class:`Ref` for by-reference injectors.
            semantic_type: Semantic type name, unless the injector is locked.
            nullable: Whether ``None`` is acceptable.

        Returns:
            The placeholder tag.
        """
        stype = self._resolve_type(semantic_type)
        stored = self._capture(value, stype, nullable)
        tag = self._allocator.new_tag(self.tag_prefix)
        self._bag.add(BindingEntry(tag, stored, stype, self.mode, nullable=nullable))
        return tag


class InOutInjector(Injector):
    """INOUT parameter: a session variable initialised with a local value."""

    __slots__ = ()

    def __call__(
        self,
        value: Any,
        variable: str,
        semantic_type: "Union[SemanticType, str, None]" = None,
        nullable: bool = False,
    ) -> str:
        """Register the initial value of ``variable`` and return the variable name.

        Args:
            value: Initial value, or a :class:`Ref` for by-reference injectors.
            variable: Backend session variable such as ``@stock``.
            semantic_type: Semantic type name, unless the injector is locked.
            nullable: Whether ``None`` is acceptable.

        Returns:
            ``variable``, to splice into the CALL statement.
        """
        validate_variable(variable)
        stype = self._resolve_type(semantic_type)
        stored = self._capture(value, stype, nullable)
        tag = self._allocator.new_tag(self.tag_prefix)
        self._bag.add(
            BindingEntry(tag, stored, stype, BindingMode.INOUT, nullable=nullable, variable=variable, via=self.via)
        )
        return variable


class OutInjector(Injector):
    """OUT parameter: a session variable the routine writes to."""

    __slots__ = ()

    def __call__(self, variable: str, semantic_type: "Union[SemanticType, str, None]" = None) -> str:
        """Declare ``variable`` as an OUT parameter.

        Args:
            variable: Backend session variable such as ``@nb``.
            semantic_type: Type the fetched value is cast to; the backend's value
                is kept when neither this nor a locked type is given.

        Returns:
            ``variable``, to splice into the CALL statement.
        """
        validate_variable(variable)
        stype: Optional[SemanticType] = self.locked_type
        if semantic_type is not None:
            stype = self._resolve_type(semantic_type)
        tag = self._allocator.new_tag(self.tag_prefix)
        self._bag.add(BindingEntry(tag, None, stype, BindingMode.OUT, nullable=True, variable=variable))
        return variable


class InjectorFactory:
    """Builds the injector variants of one binding bag."""

    __slots__ = ("_allocator", "_bag", "tag_prefix")

    def __init__(self, bag: "BindingBag", allocator: "TagAllocator", tag_prefix: Optional[str] = None) -> None:
        self._bag = bag
        self._allocator = allocator
        self.tag_prefix = tag_prefix

    def _in(self, mode: BindingMode, locked_type: "Union[SemanticType, str, None]") -> InInjector:
        return InInjector(self._bag, self._allocator, mode, locked_type=locked_type, tag_prefix=self.tag_prefix)

    def _inout(self, via: BindingMode, locked_type: "Union[SemanticType, str, None]") -> InOutInjector:
        return InOutInjector(
            self._bag, self._allocator, BindingMode.INOUT, via=via, locked_type=locked_type, tag_prefix=self.tag_prefix
        )

    def in_literal(self, locked_type: "Union[SemanticType, str, None]" = None) -> InInjector:
        return self._in(BindingMode.INLINE_LITERAL, locked_type)

    def in_by_value(self, locked_type: "Union[SemanticType, str, None]" = None) -> InInjector:
        return self._in(BindingMode.BIND_BY_VALUE, locked_type)

    def in_by_reference(self, locked_type: "Union[SemanticType, str, None]" = None) -> InInjector:
        return self._in(BindingMode.BIND_BY_REFERENCE, locked_type)

    def inout_literal(self, locked_type: "Union[SemanticType, str, None]" = None) -> InOutInjector:
        return self._inout(BindingMode.INLINE_LITERAL, locked_type)

    def inout_by_value(self, locked_type: "Union[SemanticType, str, None]" = None) -> InOutInjector:
        return self._inout(BindingMode.BIND_BY_VALUE, locked_type)

    def inout_by_reference(self, locked_type: "Union[SemanticType, str, None]" = None) -> InOutInjector:
        return self._inout(BindingMode.BIND_BY_REFERENCE, locked_type)

    def out(self, locked_type: "Union[SemanticType, str, None]" = None) -> OutInjector:
        return OutInjector(
            self._bag, self._allocator, BindingMode.OUT, locked_type=locked_type, tag_prefix=self.tag_prefix
        )
