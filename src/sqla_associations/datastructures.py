from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, TypeVar


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


K = TypeVar("K")
V = TypeVar("V")


class frozendict(Mapping[K, V]):  # noqa: N801
    """Immutable mapping used to hold a relationship's declared options.

    Relationship descriptors are shared by every instance of the declaring
    model, so their options must never change after declaration. Derived
    option sets (the finder subset, or the options extended with a synthesized
    join) are produced as new instances through ``copy``, ``only`` and
    ``without``.

    The hash is computed lazily because option values such as SQLAlchemy
    clauses are not always hashable; an instance is only hashable when all of
    its values are.

    Example:
        >>> options = frozendict(order="name", limit=5)
        >>> options.only(("order",))
        <frozendict {'order': 'name'}>
        >>> options.copy(joins="INNER JOIN payments ON(...)")["joins"]
        'INNER JOIN payments ON(...)'
    """

    __slots__ = ("_dict", "_hash")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._dict: dict[K, V] = dict(*args, **kwargs)
        self._hash: int | None = None

    def __getitem__(self, key: K) -> V:
        return self._dict[key]

    def __contains__(self, key: Any) -> bool:
        return key in self._dict

    def copy(self, **add_or_replace: Any) -> Self:
        """Return a new instance with the given items added or replaced."""
        return type(self)(self, **add_or_replace)

    def only(self, keys: Iterable[K]) -> Self:
        """Return a new instance restricted to *keys* (missing keys are ignored)."""
        wanted = set(keys)
        return type(self)((k, v) for k, v in self._dict.items() if k in wanted)

    def without(self, *keys: K) -> Self:
        """Return a new instance with *keys* removed."""
        return type(self)((k, v) for k, v in self._dict.items() if k not in keys)

    def __iter__(self) -> Iterator[K]:
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._dict!r}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, frozendict):
            return self._dict == other._dict

        if isinstance(other, dict):
            return self._dict == other

        return NotImplemented

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._dict.items()))

        return self._hash
