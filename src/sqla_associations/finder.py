from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final, Literal, Union, overload


if sys.version_info >= (3, 11):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict

import sqlalchemy as sa

from .conditions import ConditionLike, normalize_conditions
from .exceptions import UndefinedRelationshipError


if TYPE_CHECKING:
    from .model import Model
    from .table import Table


logger = logging.getLogger(__name__)

FindMode = Literal["first", "all"]
IncludeLike = Union[str, Sequence[Any], Mapping[str, Any]]

VALID_OPTIONS: Final[frozenset[str]] = frozenset({
    "conditions",
    "joins",
    "include",
    "order",
    "group",
    "having",
    "limit",
    "offset",
    "select",
    "readonly",
})


class FindOptions(TypedDict, total=False):
    conditions: ConditionLike | Sequence[ConditionLike] | None
    joins: str | Sequence[str]
    include: IncludeLike
    order: str
    group: str
    having: str
    limit: int
    offset: int
    select: str
    readonly: bool


@overload
def find(model: type[Model], mode: Literal["first"], options: Mapping[str, Any] | None = None) -> Model | None: ...


@overload
def find(model: type[Model], mode: Literal["all"], options: Mapping[str, Any] | None = None) -> list[Model]: ...


def find(
    model: type[Model],
    mode: FindMode,
    options: Mapping[str, Any] | None = None,
) -> Model | list[Model] | None:
    """Run one SELECT against *model*'s table and hydrate the rows.

    Args:
        model: Model class to query.
        mode: ``"first"`` returns the first match or ``None``; ``"all"``
            returns a list.
        options: Any of ``VALID_OPTIONS``. ``conditions`` accepts SQL text,
            ``(sql, params)`` pairs or SQLAlchemy clauses. ``joins`` accepts
            SQL text or relationship names. ``include`` eager-loads
            relationships on the results, one extra query per relationship.

    Raises:
        ValueError: On an unknown option or mode.
        UndefinedRelationshipError: If ``joins`` or ``include`` names an
            undeclared relationship.
    """
    options = dict(options or {})
    if unknown := sorted(set(options) - VALID_OPTIONS):
        raise ValueError(f"Unknown find option(s): {', '.join(unknown)}")

    if mode not in ("first", "all"):
        raise ValueError(f"Unknown find mode {mode!r}; expected 'first' or 'all'")

    table = model.table()
    if mode == "first":
        options["limit"] = 1

    statement = build_select(table, options)
    readonly = bool(options.get("readonly"))
    records = [
        model.from_row(row, readonly=readonly)
        for row in table.conn.execute(statement).mappings()
    ]
    logger.debug("Found %d %s record(s)", len(records), model.__name__)

    if records and (includes := options.get("include")):
        execute_eager_load(table, records, includes)

    if mode == "first":
        return records[0] if records else None

    return records


def build_select(table: Table, options: Mapping[str, Any]) -> sa.Select[Any]:
    """Translate finder options into a ``SELECT`` on *table*."""
    table_name = table.get_fully_qualified_table_name()
    from_sql = table_name
    if joins := options.get("joins"):
        from_sql = f"{table_name} {render_joins(table, joins)}"

    statement = sa.select(sa.text(options.get("select") or f"{table_name}.*")).select_from(
        sa.text(from_sql)
    )

    if conditions := normalize_conditions(options.get("conditions")):
        statement = statement.where(*conditions)

    if order := options.get("order"):
        statement = statement.order_by(sa.text(order))

    if group := options.get("group"):
        statement = statement.group_by(sa.text(group))

    if having := options.get("having"):
        statement = statement.having(sa.text(having))

    if (limit := options.get("limit")) is not None:
        statement = statement.limit(limit)

    if (offset := options.get("offset")) is not None:
        statement = statement.offset(offset)

    return statement


def render_joins(table: Table, joins: str | Sequence[str]) -> str:
    """Render the ``joins`` option.

    A string is used verbatim. In a sequence, relationship names declared on
    *table* become inner joins and anything else is treated as SQL text. A
    table joined a second time is aliased with the relationship name.
    """
    if isinstance(joins, str):
        return joins

    fragments: list[str] = []
    joined = {table.get_fully_qualified_table_name()}
    for join in joins:
        relationship = table.get_relationship(join)
        if relationship is None:
            if " " not in join.strip():
                raise UndefinedRelationshipError(
                    f"Relationship named {join!r} has not been declared for class {table.model.__name__}"
                )

            fragments.append(join)
            continue

        target_name = relationship.get_table().get_fully_qualified_table_name()
        alias = relationship.attribute_name if target_name in joined else None
        joined.add(target_name)
        fragments.append(relationship.construct_inner_join_sql(table, alias=alias))

    return " ".join(fragments)


def execute_eager_load(table: Table, records: Sequence[Model], includes: IncludeLike) -> None:
    """Eager-load every relationship named in *includes* onto *records*.

    Each distinct relationship is loaded once for the whole layer of records;
    nested includes are forwarded and loaded once per layer below.
    """
    snapshots = [record.attributes for record in records]
    for name, nested in normalize_includes(includes):
        relationship = table.get_relationship(name)
        if relationship is None:
            raise UndefinedRelationshipError(
                f"Relationship named {name!r} has not been declared for class {table.model.__name__}"
            )

        relationship.load_eagerly(records, snapshots, nested, table)


def normalize_includes(includes: IncludeLike) -> list[tuple[str, IncludeLike | None]]:
    """Flatten *includes* into ``(name, nested)`` pairs, merging repeated names.

    Example:
        >>> normalize_includes(["author", {"comments": "reactions"}, "comments"])
        [('author', None), ('comments', ('reactions',))]
    """
    if isinstance(includes, str):
        return [(includes, None)]

    if isinstance(includes, Mapping):
        items: Sequence[tuple[str, Any]] = list(includes.items())
    else:
        items = [pair for item in includes for pair in normalize_includes(item)]

    merged: dict[str, list[Any]] = {}
    for name, nested in items:
        bucket = merged.setdefault(name, [])
        if nested:
            bucket.append(nested)

    return [(name, tuple(nested) if nested else None) for name, nested in merged.items()]
