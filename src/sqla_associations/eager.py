from __future__ import annotations

import copy
import enum
import logging
import warnings
from collections.abc import Hashable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final

from .conditions import add_condition, create_membership_conditions
from .finder import IncludeLike, find


if TYPE_CHECKING:
    from .model import Model
    from .relationships import Relationship
    from .table import Table


logger = logging.getLogger(__name__)

THROUGH_KEY_ALIAS: Final[str] = "_association_key"


class AliasingPolicy(enum.Enum):
    """How a related record shared by several owners is handed out.

    ``COPY``: the first owner receives the loaded instance, every later owner
    an independent shallow copy, so mutating one owner's record never leaks
    into another's. ``SHARE``: every owner receives the same instance.
    """

    COPY = "copy"
    SHARE = "share"


class RelatedPool:
    """Canonical related records of one eager-load batch, keyed by primary key."""

    __slots__ = ("_canonical", "policy")

    def __init__(self, policy: AliasingPolicy = AliasingPolicy.COPY) -> None:
        self.policy = policy
        self._canonical: dict[Hashable, Model] = {}

    def checkout(self, record: Model) -> Model:
        """Return *record* itself, the canonical instance, or a copy, per policy."""
        key = _identity(record)
        canonical = self._canonical.get(key)
        if canonical is None:
            self._canonical[key] = record
            return record

        if self.policy is AliasingPolicy.SHARE:
            return canonical

        return copy.copy(record)


def _identity(record: Model) -> Hashable:
    values = record.primary_key_values()
    if all(value is None for value in values):
        return (type(record), id(record))

    return (type(record), values)


def load_eagerly(
    relationship: Relationship,
    owners: Sequence[Model],
    attribute_snapshots: Sequence[Mapping[str, Any]],
    includes: IncludeLike | None,
    table: Table,
) -> None:
    """Resolve *relationship* for every owner with a single query.

    Query-key values are collected from *attribute_snapshots* (owner primary
    keys for HasMany/HasOne and HasAndBelongsToMany, owner foreign keys for
    BelongsTo, the intermediate's owner keys for through relationships), and
    matched with one membership condition AND-ed with the relationship's
    static conditions. Results are grouped by key value and attached to the
    matching owners through a ``RelatedPool``. Owners without a match get
    ``None`` (singular) or ``[]`` (plural).

    Args:
        relationship: The relationship being loaded.
        owners: Owner records, all instances of ``table.model``.
        attribute_snapshots: Attribute mappings of *owners*, in the same order.
        includes: Nested includes forwarded to the related query.
        table: Table metadata of the owners.

    Raises:
        ValueError: If *owners* and *attribute_snapshots* differ in length.
    """
    if not owners:
        return

    if len(owners) != len(attribute_snapshots):
        raise ValueError(
            f"Got {len(attribute_snapshots)} attribute snapshot(s) for {len(owners)} owner(s)"
        )

    name = relationship.attribute_name
    plural = relationship.is_poly()
    plan = relationship.lookup_plan(table.model)
    owner_keys = [tuple(snapshot.get(key) for key in plan.value_keys) for snapshot in attribute_snapshots]

    for owner in owners:
        owner.set_relationship(name, [] if plural else None)

    membership = create_membership_conditions(plan.filter_keys, owner_keys)
    if membership is None:
        logger.debug("Skipping eager load of %s.%s: no key values", table.model.__name__, name)
        return

    options = relationship.finder_options(plan)
    options["conditions"] = add_condition(*relationship.conditions, membership)
    if includes:
        options["include"] = includes

    aliases: tuple[str, ...] = ()
    group_keys = plan.group_keys
    if not group_keys:
        # The lookup columns live on a joined table; select them next to the
        # related columns and group on the aliases.
        aliases = tuple(f"{THROUGH_KEY_ALIAS}_{i}" for i in range(len(plan.filter_keys)))
        target_columns = options.get("select") or (
            f"{relationship.get_table().get_fully_qualified_table_name()}.*"
        )
        options["select"] = ", ".join(
            (target_columns, *(f"{key} AS {alias}" for key, alias in zip(plan.filter_keys, aliases)))
        )
        group_keys = aliases

    logger.debug(
        "Eager loading %s.%s for %d owner(s)", table.model.__name__, name, len(owners)
    )
    related = find(relationship.target_class, "all", options)

    grouped: dict[tuple[Any, ...], list[Model]] = {}
    for record in related:
        key = tuple(record.read_attribute(column) for column in group_keys)
        for alias in aliases:
            record.attributes.pop(alias, None)

        grouped.setdefault(key, []).append(record)

    pool = RelatedPool(_aliasing_policy(relationship.options.get("aliasing", AliasingPolicy.COPY)))
    for owner, key in zip(owners, owner_keys):
        matches = grouped.get(key, [])
        for record in matches if plural else matches[:1]:
            owner.set_relationship_from_eager_load(pool.checkout(record), name)


def _aliasing_policy(value: AliasingPolicy | str) -> AliasingPolicy:
    if isinstance(value, AliasingPolicy):
        return value

    try:
        return AliasingPolicy(value)
    except ValueError:
        warnings.warn(f"Unknown aliasing policy: {value!r}. Using copy.", stacklevel=3)
        return AliasingPolicy.COPY
