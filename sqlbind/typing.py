from typing import TYPE_CHECKING, Any, Callable, Union

from typing_extensions import TypeAlias, TypeVar

if TYPE_CHECKING:
    from sqlbind.exceptions import BackendExecutionError

__all__ = (
    "ConnectionT",
    "DictRow",
    "ErrorCallback",
    "RawValue",
    "RowList",
)

ConnectionT = TypeVar("ConnectionT")
"""Type variable for connection types.

:class:`~sqlbind.typing.ConnectionT`
"""

DictRow: TypeAlias = "dict[str, Any]"
"""Type variable for DictRow types."""

RowList: TypeAlias = "list[dict[str, Any]]"
"""All rows of one result set, each a mapping of field name to value."""

RawValue: TypeAlias = Union[None, bool, int, float, str, bytes]
"""Scalar values an injector accepts without conversion."""

ErrorCallback: TypeAlias = "Callable[[BackendExecutionError, str, str], Any]"
"""Wrap-mode callback receiving the error, the failing SQL text and the verb name."""

