"""Type coercion for injected values.

Maps a semantic type name and a raw value to the cast value and the backend
parameter kind, and renders inline SQL literals.

Components:
- SemanticType enum: the type names injectors accept
- ParamKind enum: the parameter kinds handed to the backend when binding
- coerce(): cast a raw value, enforcing the nullable rule
- render_literal(): inline SQL text for a value
- cast_out_value(): cast a fetched OUT/INOUT value back to its declared type

Rules:
- ``int`` casts to an integer, taking the leading number of a string (0 when
  there is none); ``bool`` is false only for zero and the false strings
- ``float``/``double``/``num``/``numeric`` cast to float and back to text, so the
  decimal representation crosses the wire instead of a binary float
- ``binary`` passes bytes through, rendered inline as a hex literal
- ``bigint`` passes its text through untouched
- anything else casts to a string, quoted inline by the backend itself
"""

import math
import re
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from functools import singledispatch
from typing import Any, Final, Optional, Union

from sqlbind.exceptions import InvalidValueError, NotNullableError

__all__ = (
    "ParamKind",
    "SemanticType",
    "cast_out_value",
    "coerce",
    "normalize_scalar",
    "render_literal",
)

_NUMERIC_PREFIX: Final = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_FALSE_STRINGS: Final = frozenset({"0", "false", "off", "no", ""})


class SemanticType(str, Enum):
    """Semantic type of an injected value.

    ``double``, ``num`` and ``numeric`` are aliases of ``float``. Unknown names
    resolve to ``str``.
    """

    INT = "int"
    STR = "str"
    FLOAT = "float"
    BOOL = "bool"
    BINARY = "binary"
    BIGINT = "bigint"
    NULL = "null"

    @classmethod
    def parse(cls, name: "Union[SemanticType, str, None]") -> "SemanticType":
        """Resolve a type name, alias or member to a member.

        Args:
            name: Type name as given by the caller.

        Returns:
            The matching member, ``STR`` when the name is unknown or missing.
        """
        if isinstance(name, SemanticType):
            return name
        if name is None:
            return cls.STR
        normalized = name.strip().lower()
        if normalized in _FLOAT_ALIASES:
            return cls.FLOAT
        try:
            return cls(normalized)
        except ValueError:
            return cls.STR

    def __str__(self) -> str:
        return self.value


_FLOAT_ALIASES: Final = frozenset({"float", "double", "num", "numeric"})


class ParamKind(Enum):
    """Parameter kind handed to the backend binding API."""

    NULL = "null"
    INT = "int"
    STR = "str"
    BOOL = "bool"
    LOB = "lob"
    BIGINT = "bigint"


@singledispatch
def normalize_scalar(value: Any) -> Any:
    """Return ``value`` as a scalar, stringifying objects that define ``__str__``.

    Raises:
        InvalidValueError: The value is an aggregate or cannot be turned into a string.
    """
    if type(value).__str__ is object.__str__:
        msg = "Scalar value expected or an object implementing __str__"
        raise InvalidValueError(msg, value)
    return str(value)


@normalize_scalar.register(type(None))
@normalize_scalar.register(int)
@normalize_scalar.register(float)
@normalize_scalar.register(str)
@normalize_scalar.register(bytes)
@normalize_scalar.register(Decimal)
def _(value: Any) -> Any:
    return value


@normalize_scalar.register(bytearray)
@normalize_scalar.register(memoryview)
def _(value: "Union[bytearray, memoryview]") -> bytes:
    return bytes(value)


@normalize_scalar.register(list)
@normalize_scalar.register(tuple)
@normalize_scalar.register(dict)
@normalize_scalar.register(set)
@normalize_scalar.register(frozenset)
def _(value: Any) -> Any:
    msg = "Scalar value expected, not an aggregate"
    raise InvalidValueError(msg, value)


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = "Bytes are not valid UTF-8 text, use the binary type"
            raise InvalidValueError(msg, value) from exc
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _numeric_prefix(value: Any) -> Decimal:
    """Leading number of ``value``, zero when the text does not start with one."""
    if isinstance(value, (bool, int)):
        return Decimal(int(value))
    if isinstance(value, float):
        return Decimal(value) if math.isfinite(value) else Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    text = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
    match = _NUMERIC_PREFIX.match(text)
    return Decimal(match.group(0)) if match else Decimal(0)


def _to_int(value: Any) -> "tuple[int, ParamKind]":
    if isinstance(value, (bool, int)):
        return int(value), ParamKind.INT
    return int(_numeric_prefix(value)), ParamKind.INT


def _to_bool(value: Any) -> "tuple[bool, ParamKind]":
    if isinstance(value, (bool, int, float, Decimal)):
        return bool(value), ParamKind.BOOL
    text = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
    return text.strip().lower() not in _FALSE_STRINGS, ParamKind.BOOL


def _to_float_text(value: Any) -> "tuple[str, ParamKind]":
    if isinstance(value, Decimal) and not value.is_finite():
        number = math.nan
    else:
        number = float(value) if isinstance(value, (float, Decimal)) else float(_numeric_prefix(value))
    if not math.isfinite(number):
        msg = f"Non-finite float {value!r} has no SQL representation"
        raise InvalidValueError(msg, value)
    return repr(number), ParamKind.STR


def _to_binary(value: Any) -> "tuple[bytes, ParamKind]":
    if isinstance(value, bytes):
        return value, ParamKind.LOB
    return _as_text(value).encode("utf-8"), ParamKind.LOB


def _to_bigint(value: Any) -> "tuple[str, ParamKind]":
    return _as_text(value), ParamKind.BIGINT


def _to_str(value: Any) -> "tuple[str, ParamKind]":
    return _as_text(value), ParamKind.STR


_CASTERS: "Final[dict[SemanticType, Callable[[Any], tuple[Any, ParamKind]]]]" = {
    SemanticType.INT: _to_int,
    SemanticType.BOOL: _to_bool,
    SemanticType.FLOAT: _to_float_text,
    SemanticType.BINARY: _to_binary,
    SemanticType.BIGINT: _to_bigint,
    SemanticType.STR: _to_str,
}


def coerce(
    value: Any, semantic_type: "Union[SemanticType, str, None]" = None, nullable: bool = False
) -> "tuple[Any, ParamKind]":
    """Cast a raw value according to its semantic type.

    Args:
        value: Raw value given to an injector.
        semantic_type: Semantic type name; ``None`` means ``str``.
        nullable: Whether ``None`` is an acceptable value.

    Raises:
        NotNullableError: ``value`` is ``None`` and ``nullable`` is false.
        InvalidValueError: ``value`` is not scalar, or is a non-finite float given a float type.

    Returns:
        Tuple of (cast value, parameter kind).
    """
    stype = SemanticType.parse(semantic_type)
    if stype is SemanticType.NULL:
        return None, ParamKind.NULL
    if value is None:
        if not nullable:
            raise NotNullableError
        return None, ParamKind.NULL
    return _CASTERS[stype](normalize_scalar(value))


def render_literal(
    value: Any,
    semantic_type: "Union[SemanticType, str, None]",
    nullable: bool,
    quote: "Callable[[str], str]",
    quote_binary: "Optional[Callable[[bytes], str]]" = None,
) -> str:
    """Render a value as inline SQL text.

    ``NULL`` is rendered without calling ``quote``; strings always go through it.

    Args:
        value: Raw value given to an injector.
        semantic_type: Semantic type name.
        nullable: Whether ``None`` is an acceptable value.
        quote: The backend's string quoting routine.
        quote_binary: The backend's binary literal routine, if it has one.

    Returns:
        The SQL literal.
    """
    cast, kind = coerce(value, semantic_type, nullable)
    if kind is ParamKind.NULL:
        return "NULL"
    if kind is ParamKind.BOOL:
        return "1" if cast else "0"
    if kind in {ParamKind.INT, ParamKind.BIGINT}:
        return str(cast)
    if kind is ParamKind.LOB:
        if quote_binary is not None:
            return quote_binary(cast)
        return f"0x{cast.hex()}" if cast else "''"
    return quote(cast)


def cast_out_value(value: Any, semantic_type: "Union[SemanticType, str, None]" = None) -> Any:
    """Cast a value fetched from a backend session variable to its declared type.

    Args:
        value: Value as returned by the backend.
        semantic_type: Declared semantic type; ``None`` keeps the backend's value.

    Returns:
        The cast value, ``None`` for SQL NULL.
    """
    if value is None or semantic_type is None:
        return value
    stype = SemanticType.parse(semantic_type)
    if stype is SemanticType.NULL:
        return None
    if stype is SemanticType.FLOAT:
        return value if isinstance(value, float) else float(_numeric_prefix(value))
    if stype is SemanticType.BIGINT:
        return _as_text(value)
    cast, _ = _CASTERS[stype](normalize_scalar(value))
    return cast
