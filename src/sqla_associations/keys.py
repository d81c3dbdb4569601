from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import ConfigurationError
from .inflector import keyify, tableize


if TYPE_CHECKING:
    from .model import Model
    from .table import Table


class RelationshipKind(enum.Enum):
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"
    BELONGS_TO = "belongs_to"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"

    @property
    def is_plural(self) -> bool:
        return self in (RelationshipKind.HAS_MANY, RelationshipKind.HAS_AND_BELONGS_TO_MANY)

    @property
    def key_on_target(self) -> bool:
        """Whether the foreign key column lives on the related (target) table."""
        return self in (RelationshipKind.HAS_MANY, RelationshipKind.HAS_ONE)


@dataclass(slots=True, frozen=True)
class KeyPair:
    """Foreign/primary key column names correlating owner and related rows.

    Composite keys are positional: ``foreign_key[i]`` references
    ``primary_key[i]``.
    """

    foreign_key: tuple[str, ...]
    primary_key: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.foreign_key or not self.primary_key:
            raise ConfigurationError(f"Empty key list in {self!r}")

        if len(self.foreign_key) != len(self.primary_key):
            raise ConfigurationError(
                f"foreign_key {self.foreign_key} and primary_key {self.primary_key} "
                "must have the same number of columns"
            )


@dataclass(slots=True, frozen=True)
class LookupPlan:
    """How a relationship finds related rows for an owner.

    Attributes:
        filter_keys: Qualified columns on the queried side compared with the
            owner's values.
        value_keys: Owner attribute names supplying those values.
        joins: Join fragment the query needs to reach ``filter_keys``.
        group_keys: Attribute names on hydrated related records holding the
            value to group by. Empty when ``filter_keys`` live on a joined
            table and must be selected alongside the related columns.
    """

    filter_keys: tuple[str, ...]
    value_keys: tuple[str, ...]
    joins: str | None = None
    group_keys: tuple[str, ...] = ()


def normalize_keys(value: str | Sequence[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()

    return (value,) if isinstance(value, str) else tuple(value)


def resolve_key_pair(
    kind: RelationshipKind,
    owner: type[Model],
    target_name: str,
    load_target: Callable[[], Table],
    foreign_key: tuple[str, ...] = (),
    primary_key: tuple[str, ...] = (),
) -> KeyPair:
    """Resolve the key pair for *kind*, preferring the explicit columns.

    BelongsTo keeps the foreign key on the owner, so it is named after the
    target type and references the target's primary key. Every other kind
    names the foreign key after the owner type and references the owner's
    primary key.
    """
    if kind is RelationshipKind.BELONGS_TO:
        return KeyPair(
            foreign_key or (keyify(target_name),),
            primary_key or load_target().pk,
        )

    return KeyPair(
        foreign_key or (keyify(owner.__name__),),
        primary_key or owner.table().pk,
    )


def infer_join_table(owner_name: str, target_name: str) -> str:
    """Conventional join table for a many-to-many pair.

    Both type names are tableized, sorted and joined with ``_``:
    ``("Student", "Course")`` -> ``"courses_students"``.
    """
    return "_".join(sorted((tableize(owner_name), tableize(target_name))))
