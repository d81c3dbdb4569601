from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Union

import sqlalchemy as sa


Clause = Union[sa.ColumnElement[bool], sa.TextClause]
ConditionLike = Union[str, tuple[str, Mapping[str, Any]], Clause]


def qualify(table_name: str, column: str) -> str:
    """Prefix *column* with *table_name* unless it is already qualified."""
    return column if "." in column else f"{table_name}.{column}"


def _key_column(key: str) -> sa.ColumnElement[Any]:
    # Keys are rendered verbatim so they can reference joined tables without
    # pulling them into the FROM list.
    return sa.literal_column(key)


def _to_clause(condition: ConditionLike) -> Clause:
    if isinstance(condition, str):
        return sa.text(condition)

    if isinstance(condition, tuple):
        sql, params = condition
        return sa.text(sql).bindparams(**params)

    return condition


def _is_single(condition: Any) -> bool:
    return (
        isinstance(condition, (str, sa.ClauseElement))
        or (
            isinstance(condition, tuple)
            and len(condition) == 2  # noqa: PLR2004
            and isinstance(condition[0], str)
            and isinstance(condition[1], Mapping)
        )
    )


def normalize_conditions(conditions: ConditionLike | Sequence[ConditionLike] | None) -> tuple[Clause, ...]:
    """Coerce user supplied conditions into a tuple of SQLAlchemy clauses.

    Accepts a SQL string, a ``(sql, params)`` pair with named bind parameters,
    a SQLAlchemy boolean expression, or a sequence of any of those.

    Example:
        >>> normalize_conditions(("payments.amount < :amount", {"amount": 200}))
        (<sqlalchemy.sql.elements.TextClause ...>,)
    """
    if conditions is None:
        return ()

    if _is_single(conditions):
        return (_to_clause(conditions),)  # type: ignore[arg-type]

    return tuple(_to_clause(condition) for condition in conditions)  # type: ignore[union-attr]


def create_conditions(keys: Sequence[str], values: Sequence[Any]) -> Clause | None:
    """Build ``k1 = v1 AND k2 = v2 ...`` for a single owner.

    A ``None`` value compares with ``IS NULL``. If every value is ``None`` the
    lookup cannot match anything meaningful, so ``None`` is returned and the
    caller must skip the query instead of issuing one.

    Args:
        keys: Column references, optionally table-qualified.
        values: One value per key, positionally.

    Returns:
        The condition, or ``None`` when all values are ``None``.
    """
    if len(keys) != len(values):
        raise ValueError(f"Got {len(values)} value(s) for {len(keys)} key(s)")

    if all(value is None for value in values):
        return None

    return add_condition(
        *(
            _key_column(key).is_(None) if value is None else _key_column(key) == value
            for key, value in zip(keys, values)
        )
    )


def create_membership_conditions(
    keys: Sequence[str],
    value_rows: Iterable[Sequence[Any]],
) -> Clause | None:
    """Build an ``IN`` condition matching any of *value_rows*.

    A single key renders ``key IN (...)``; composite keys render a row-value
    comparison ``(k1, k2) IN ((...), (...))``. Rows holding a ``None`` can never
    match and are dropped, duplicates are collapsed. Returns ``None`` when no
    row is left.
    """
    rows = list(
        dict.fromkeys(
            tuple(row) for row in value_rows if all(value is not None for value in row)
        )
    )
    if not rows:
        return None

    if len(keys) == 1:
        return _key_column(keys[0]).in_([row[0] for row in rows])

    return sa.tuple_(*(_key_column(key) for key in keys)).in_(rows)


def add_condition(*conditions: Clause | None) -> Clause | None:
    """AND-merge *conditions*, skipping ``None``."""
    parts = [condition for condition in conditions if condition is not None]
    if not parts:
        return None

    return parts[0] if len(parts) == 1 else sa.and_(*parts)
