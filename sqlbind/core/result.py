"""Result of a stored routine call."""

from collections.abc import Iterator
from typing import Any, Optional, Union, overload

from sqlbind.typing import RowList

__all__ = ("OUT_KEY", "CallResult")

OUT_KEY = "out"


class CallResult:
    """Row sets produced by a stored routine, plus its OUT parameters.

    Row sets are reached by position and the OUT parameters under the reserved
    ``"out"`` key, mapping each session variable to its value::

        result = session.call(f"CALL sp_count({out('@nb')})", is_query=False)
        result["out"]["@nb"]

    ``len()`` counts the row sets, plus one when OUT parameters are present.
    """

    __slots__ = ("out", "result_sets")

    def __init__(self, result_sets: "Optional[list[RowList]]" = None, out: "Optional[dict[str, Any]]" = None) -> None:
        self.result_sets: list[RowList] = result_sets if result_sets is not None else []
        self.out = out

    @property
    def has_out(self) -> bool:
        return self.out is not None

    @overload
    def __getitem__(self, key: int) -> RowList: ...

    @overload
    def __getitem__(self, key: str) -> "dict[str, Any]": ...

    def __getitem__(self, key: "Union[int, str]") -> "Union[RowList, dict[str, Any]]":
        if isinstance(key, str):
            if key != OUT_KEY or self.out is None:
                raise KeyError(key)
            return self.out
        return self.result_sets[key]

    def __contains__(self, key: object) -> bool:
        if key == OUT_KEY:
            return self.out is not None
        return isinstance(key, int) and -len(self.result_sets) <= key < len(self.result_sets)

    def __len__(self) -> int:
        return len(self.result_sets) + (1 if self.out is not None else 0)

    def __iter__(self) -> Iterator[RowList]:
        return iter(self.result_sets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallResult):
            return NotImplemented
        return self.result_sets == other.result_sets and self.out == other.out

    def __repr__(self) -> str:
        return f"CallResult(result_sets={len(self.result_sets)}, out={self.out!r})"
