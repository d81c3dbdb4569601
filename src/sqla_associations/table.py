from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Final, final

import sqlalchemy as sa

from .connection import Connection
from .datastructures import frozendict
from .inflector import tableize, underscore
from .registry import Registry


if TYPE_CHECKING:
    from .model import Model
    from .relationships import Relationship


DEFAULT_PRIMARY_KEY: Final[tuple[str, ...]] = ("id",)


@final
class Table:
    """Table metadata for one model class.

    Built once per model when the class is created and shared by all of its
    instances. Holds the table name, the declared primary key and the
    relationship descriptors declared on the model (including inherited ones).
    """

    __slots__ = ("_relationships", "model", "pk", "schema", "table_name")

    def __init__(self, model: type[Model]) -> None:
        self.model = model
        self.table_name: str = getattr(model, "__tablename__", None) or tableize(model.__name__)
        self.schema: str | None = getattr(model, "__schema__", None)
        self.pk: tuple[str, ...] = _as_columns(
            getattr(model, "__primary_key__", None) or DEFAULT_PRIMARY_KEY
        )
        self._relationships: dict[str, Relationship] = {}

    @classmethod
    def load(cls, model: type[Model] | str, namespace: str | None = None) -> Table:
        """Return the metadata for a model class or a registered model name."""
        if isinstance(model, str):
            model = Registry().resolve(model, namespace)

        return model.table()

    def get_fully_qualified_table_name(self) -> str:
        return f"{self.schema}.{self.table_name}" if self.schema else self.table_name

    @property
    def relationships(self) -> Mapping[str, Relationship]:
        return frozendict(self._relationships)

    def add_relationship(self, relationship: Relationship) -> None:
        self._relationships[relationship.attribute_name] = relationship

    def get_relationship(self, name: str) -> Relationship | None:
        """Return the relationship declared under *name*, or ``None``."""
        return self._relationships.get(name) or self._relationships.get(underscore(name))

    @property
    def conn(self) -> Connection:
        return Registry().connection

    def sa_table(self, columns: Iterable[str] = ()) -> sa.TableClause:
        """A lightweight ``TableClause`` for INSERT/UPDATE statements."""
        return sa.table(
            self.table_name,
            *(sa.column(name) for name in dict.fromkeys((*self.pk, *columns))),
            schema=self.schema,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_fully_qualified_table_name()} pk={self.pk}>"


def _as_columns(value: str | Sequence[str]) -> tuple[str, ...]:
    return (value,) if isinstance(value, str) else tuple(value)
