from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .keys import KeyPair, RelationshipKind


if TYPE_CHECKING:
    from .relationships import Relationship
    from .table import Table


@dataclass(slots=True, frozen=True)
class JoinSpec:
    """One ``INNER JOIN`` between an already present table and a joined one."""

    join_table: str
    join_columns: tuple[str, ...]
    owner_table: str
    owner_columns: tuple[str, ...]
    alias: str | None = None


def render_inner_join(spec: JoinSpec, quote_name: Callable[[str], str] | None = None) -> str:
    """Render *spec* as ``INNER JOIN <table> [<alias> ]ON(<owner>.<col> = <join>.<col>)``.

    Composite keys are AND-ed inside the ``ON``. Only the alias is quoted, so
    *quote_name* is required when the spec carries one.
    """
    join_ref = spec.join_table
    alias_sql = ""
    if spec.alias is not None:
        if quote_name is None:
            raise ValueError("Rendering an aliased join requires quote_name")

        join_ref = quote_name(spec.alias)
        alias_sql = f"{join_ref} "

    on = " AND ".join(
        f"{spec.owner_table}.{owner_column} = {join_ref}.{join_column}"
        for owner_column, join_column in zip(spec.owner_columns, spec.join_columns)
    )

    return f"INNER JOIN {spec.join_table} {alias_sql}ON({on})"


def join_specs(
    from_table: Table,
    relationship: Relationship,
    *,
    using_through: bool = False,
    alias: str | None = None,
    keys: KeyPair | None = None,
) -> list[JoinSpec]:
    """Work out which tables and columns an inner join for *relationship* uses.

    Without ``using_through`` the relationship's target is joined onto
    *from_table*. With it, *from_table* is the physical join table and the
    target is the table already in the FROM clause.

    HasMany/HasOne keep the foreign key on the "many" side whatever the
    declaring direction, so the owner side always contributes the primary key.
    In the through case the keys default to the physical pair
    ``(keyify(target), target pk)`` instead of the logical owner keys; pass
    *keys* to override. BelongsTo keeps the foreign key on the declaring side.
    HasAndBelongsToMany goes through its join table: two joins when joined
    from the owner, one (target to join table) in the through case.
    """
    target = relationship.get_table()
    target_name = target.get_fully_qualified_table_name()

    if using_through:
        join_name, from_name = from_table.get_fully_qualified_table_name(), target_name
    else:
        join_name, from_name = target_name, from_table.get_fully_qualified_table_name()

    match relationship.kind:
        case RelationshipKind.HAS_MANY | RelationshipKind.HAS_ONE:
            if keys is None:
                keys = (
                    relationship.through_join_keys()
                    if using_through
                    else relationship.resolve_keys(from_table.model)
                )

            return [JoinSpec(join_name, keys.foreign_key, from_name, keys.primary_key, alias)]

        case RelationshipKind.BELONGS_TO:
            keys = keys or relationship.resolve_keys(from_table.model)

            return [JoinSpec(join_name, keys.primary_key, from_name, keys.foreign_key, alias)]

        case RelationshipKind.HAS_AND_BELONGS_TO_MANY:
            join_table = relationship.join_table
            association = relationship.association_keys()

            if using_through:
                return [
                    JoinSpec(
                        join_table, association.foreign_key, target_name, association.primary_key, alias
                    )
                ]

            keys = keys or relationship.resolve_keys(from_table.model)

            return [
                JoinSpec(join_table, keys.foreign_key, from_name, keys.primary_key),
                JoinSpec(
                    target_name, association.primary_key, join_table, association.foreign_key, alias
                ),
            ]

    raise AssertionError(f"Unhandled relationship kind {relationship.kind!r}")  # pragma: no cover


def construct_inner_join(
    from_table: Table,
    relationship: Relationship,
    using_through: bool = False,
    alias: str | None = None,
    keys: KeyPair | None = None,
) -> str:
    """Build the ``INNER JOIN`` text for *relationship* joined from *from_table*.

    Args:
        from_table: Table already in the FROM clause, or the physical join
            table when ``using_through`` is set.
        relationship: Relationship whose target is joined.
        using_through: Build the join for a through relationship.
        alias: Alias for the joined table, for tables joined twice.
        keys: Explicit physical key pair; defaults per relationship kind.

    Returns:
        The join fragment, e.g. ``INNER JOIN targets ON(owners.id = targets.owner_id)``.
    """
    specs = join_specs(from_table, relationship, using_through=using_through, alias=alias, keys=keys)
    quote_name = from_table.conn.quote_name if alias is not None else None

    return " ".join(render_inner_join(spec, quote_name) for spec in specs)
