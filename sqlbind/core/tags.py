"""Placeholder tag allocation.

Tags are the opaque tokens injectors splice into SQL templates. A tag is either
replaced by a literal during the build or used as a named placeholder for a
bound parameter, so two tags must never be equal and no tag may be a prefix of
another. Every tag has the same length, which guarantees the latter.
"""

import random
import string
import threading
from typing import Final, Optional

from mypy_extensions import mypyc_attr

__all__ = ("DEFAULT_TAG_PREFIX", "TagAllocator")

DEFAULT_TAG_PREFIX: Final = ":"
_LETTERS: Final = string.ascii_letters
_LETTER_COUNT: Final = 16
_NUMBER_MIN: Final = 1000
_NUMBER_MAX: Final = 9999


@mypyc_attr(allow_interpreted_subclasses=False)
class TagAllocator:
    """Issues tags that are unique for the lifetime of the allocator.

    The process-wide allocator lives on :class:`sqlbind.base.SQLBind`; tests can
    build their own instance to run in isolation.
    """

    __slots__ = ("_issued", "_lock", "_random", "default_prefix")

    def __init__(self, default_prefix: str = DEFAULT_TAG_PREFIX, seed: Optional[int] = None) -> None:
        """Initialize the allocator.

        Args:
            default_prefix: Prefix used when :meth:`new_tag` gets none.
            seed: Optional seed for reproducible tags in tests.
        """
        self.default_prefix = default_prefix
        self._issued: set[str] = set()
        self._lock = threading.Lock()
        self._random = random.Random(seed)  # noqa: S311

    def _candidate(self, prefix: str) -> str:
        letters = "".join(self._random.choices(_LETTERS, k=_LETTER_COUNT))
        return f"{prefix}{letters}{self._random.randint(_NUMBER_MIN, _NUMBER_MAX)}"

    def new_tag(self, prefix: Optional[str] = None) -> str:
        """Return a tag that this allocator has never issued before.

        Args:
            prefix: Placeholder marker put in front of the tag.

        Returns:
            The new tag.
        """
        prefix = self.default_prefix if prefix is None else prefix
        with self._lock:
            tag = self._candidate(prefix)
            while tag in self._issued:
                tag = self._candidate(prefix)
            self._issued.add(tag)
        return tag

    def is_issued(self, tag: str) -> bool:
        return tag in self._issued

    @property
    def issued_count(self) -> int:
        return len(self._issued)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(issued={self.issued_count})"
