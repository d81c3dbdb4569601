from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, ClassVar, Literal, overload

import sqlalchemy as sa

from .exceptions import ConfigurationError, ReadOnlyModelError, UndefinedRelationshipError
from .finder import FindMode, FindOptions, find
from .registry import Registry
from .relationships import Relationship
from .table import Table


if sys.version_info >= (3, 11):
    from typing import Unpack
else:
    from typing_extensions import Unpack


logger = logging.getLogger(__name__)


class Model:
    """Base class for records whose relationships are resolved by this package.

    A subclass maps one table. Columns are not declared: a record holds
    whatever the row it was loaded from holds, exposed both through
    ``attributes`` and as plain attributes. Relationships are declared as
    class attributes and are collected into the class's ``Table`` when the
    class is created; the class is registered by name at the same time.

    Class attributes:
        __tablename__: Table name, defaults to the tableized class name.
        __primary_key__: Primary key column(s), defaults to ``("id",)``.
        __schema__: Optional schema the table lives in.
        __abstract__: Set to ``True`` on intermediate base classes that map
            no table; they are neither registered nor given a ``Table``.
        attr_accessible: When set, the only attributes mass assignment may write.
        attr_protected: Attributes mass assignment never writes. Primary key
            columns are always protected.

    Example:
        >>> class School(Model):
        ...     people = HasMany()
        >>> class Person(Model):
        ...     attr_protected = ("role",)
        ...     school = BelongsTo()
        >>> school = School.first(conditions=("name = :name", {"name": "Hogwarts"}))
        >>> [person.name for person in school.people]
        ['Harry', 'Hermione']
    """

    __abstract__: ClassVar[bool] = True
    __tablename__: ClassVar[str | None] = None
    __schema__: ClassVar[str | None] = None
    __primary_key__: ClassVar[str | Sequence[str] | None] = None

    attr_accessible: ClassVar[Sequence[str] | None] = None
    attr_protected: ClassVar[Sequence[str]] = ()

    _table: ClassVar[Table]

    _attributes: dict[str, Any]
    _relationships: dict[str, Any]
    _new_record: bool
    _readonly: bool

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__dict__.get("__abstract__", False):
            return

        table = Table(cls)
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, Relationship):
                    table.add_relationship(value)

        cls._table = table
        Registry().register(cls)

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        /,
        *,
        guard_attributes: bool = True,
        **kwargs: Any,
    ) -> None:
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_relationships", {})
        object.__setattr__(self, "_new_record", True)
        object.__setattr__(self, "_readonly", False)

        self.set_attributes({**(attributes or {}), **kwargs}, guard=guard_attributes)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], readonly: bool = False) -> Model:
        """Hydrate a persisted record from a result row."""
        record = cls.__new__(cls)
        object.__setattr__(record, "_attributes", dict(row))
        object.__setattr__(record, "_relationships", {})
        object.__setattr__(record, "_new_record", False)
        object.__setattr__(record, "_readonly", readonly)

        return record

    @classmethod
    def table(cls) -> Table:
        """Table metadata of this model class."""
        if "_table" not in cls.__dict__:
            raise ConfigurationError(f"{cls.__name__} is abstract and maps no table")

        return cls._table

    # Attributes

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)

        try:
            return self.__dict__["_attributes"][name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self._attributes[name] = value

    @property
    def attributes(self) -> dict[str, Any]:
        """The record's column values, keyed by column name."""
        return self._attributes

    def read_attribute(self, name: str) -> Any:
        """Column value of *name*, or ``None`` when the record does not hold it."""
        return self._attributes.get(name)

    def assign_attribute(self, name: str, value: Any) -> None:
        """Write one attribute, bypassing mass assignment protection."""
        self._attributes[name] = value

    def get_values_for(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: self._attributes.get(key) for key in keys}

    def primary_key_values(self) -> tuple[Any, ...]:
        return tuple(self._attributes.get(key) for key in self.table().pk)

    def set_attributes(self, attributes: Mapping[str, Any], guard: bool = True) -> None:
        """Mass-assign *attributes*.

        With ``guard``, attributes outside ``attr_accessible`` (when it is
        set), those in ``attr_protected`` and primary key columns are skipped.
        """
        if guard:
            attributes = self._filter_protected(attributes)

        self._attributes.update(attributes)

    @classmethod
    def _filter_protected(cls, attributes: Mapping[str, Any]) -> dict[str, Any]:
        protected = {*cls.attr_protected, *cls.table().pk}
        accessible = cls.attr_accessible
        allowed = {
            name: value
            for name, value in attributes.items()
            if name not in protected and (accessible is None or name in accessible)
        }
        if skipped := sorted(set(attributes) - set(allowed)):
            logger.debug("Skipping protected attribute(s) of %s: %s", cls.__name__, ", ".join(skipped))

        return allowed

    def __copy__(self) -> Model:
        clone = type(self).__new__(type(self))
        object.__setattr__(clone, "_attributes", dict(self._attributes))
        # each clone owns its related collections
        relationships = {
            name: list(value) if isinstance(value, list) else value for name, value in self._relationships.items()
        }
        object.__setattr__(clone, "_relationships", relationships)
        object.__setattr__(clone, "_new_record", self._new_record)
        object.__setattr__(clone, "_readonly", self._readonly)

        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented

        if type(self) is not type(other) or self.is_new_record() or other.is_new_record():
            return self is other

        return self.primary_key_values() == other.primary_key_values()

    def __hash__(self) -> int:
        if self.is_new_record():
            return id(self)

        return hash((type(self), self.primary_key_values()))

    def __repr__(self) -> str:
        values = ", ".join(f"{key}={value!r}" for key, value in self._attributes.items())
        return f"<{type(self).__name__} {values}>"

    # Persistence

    def is_new_record(self) -> bool:
        return self._new_record

    def is_readonly(self) -> bool:
        return self._readonly

    def save(self) -> None:
        """Insert the record if it is new, else update it by primary key.

        Raises:
            ReadOnlyModelError: If the record was loaded with ``readonly=True``.
        """
        if self._readonly:
            raise ReadOnlyModelError(f"{type(self).__name__} record is read only")

        if self._new_record:
            self._insert()
        else:
            self._update()

    def _insert(self) -> None:
        table = self.table()
        values = {
            key: value
            for key, value in self._attributes.items()
            if not (key in table.pk and value is None)
        }
        sa_table = table.sa_table(values)
        statement = (
            sa.insert(sa_table)
            .values(**values)
            .returning(*(sa_table.c[key] for key in table.pk))
        )
        row = table.conn.execute(statement).mappings().one()
        self._attributes.update(row)
        self._new_record = False

    def _update(self) -> None:
        table = self.table()
        values = {key: value for key, value in self._attributes.items() if key not in table.pk}
        if not values:
            return

        sa_table = table.sa_table(values)
        statement = (
            sa.update(sa_table)
            .where(*(sa_table.c[key] == value for key, value in zip(table.pk, self.primary_key_values())))
            .values(**values)
        )
        table.conn.execute(statement)

    @classmethod
    def create(cls, attributes: Mapping[str, Any] | None = None, guard_attributes: bool = True) -> Model:
        """Instantiate and save a record."""
        record = cls(attributes, guard_attributes=guard_attributes)
        record.save()

        return record

    # Finders

    @overload
    @classmethod
    def find(cls, mode: Literal["first"], **options: Unpack[FindOptions]) -> Model | None: ...

    @overload
    @classmethod
    def find(cls, mode: Literal["all"] = ..., **options: Unpack[FindOptions]) -> list[Model]: ...

    @classmethod
    def find(cls, mode: FindMode = "all", **options: Unpack[FindOptions]) -> Model | list[Model] | None:
        """Query this model's table; see ``finder.find`` for the options."""
        return find(cls, mode, options)

    @classmethod
    def first(cls, **options: Unpack[FindOptions]) -> Model | None:
        return find(cls, "first", options)

    @classmethod
    def all(cls, **options: Unpack[FindOptions]) -> list[Model]:
        return find(cls, "all", options)

    # Relationships

    def _relationship(self, name: str) -> Relationship:
        relationship = self.table().get_relationship(name)
        if relationship is None:
            raise UndefinedRelationshipError(
                f"Relationship named {name!r} has not been declared for class {type(self).__name__}"
            )

        return relationship

    def read_relationship(self, name: str) -> Any:
        """Related record(s) under *name*, loaded on first access and cached.

        Raises:
            UndefinedRelationshipError: If no relationship *name* is declared.
        """
        relationship = self._relationship(name)
        name = relationship.attribute_name
        if name not in self._relationships:
            self._relationships[name] = relationship.load(self)

        return self._relationships[name]

    def set_relationship(self, name: str, value: Any) -> None:
        self._relationships[self._relationship(name).attribute_name] = value

    def reset_relationship(self, name: str) -> None:
        """Drop the cached value so the next read loads it again."""
        self._relationships.pop(self._relationship(name).attribute_name, None)

    def set_relationship_from_eager_load(self, record: Model | None, name: str) -> None:
        """Attach one eagerly loaded record: appended if plural, assigned if singular."""
        relationship = self._relationship(name)
        name = relationship.attribute_name
        if not relationship.is_poly():
            self._relationships[name] = record
            return

        collection = self._relationships.setdefault(name, [])
        if record is not None:
            collection.append(record)

    def build_association(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        """Shortcut for ``build_association`` on the relationship declared as *name*."""
        return self._relationship(name).build_association(self, attributes, guard_attributes)

    def create_association(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        """Shortcut for ``create_association`` on the relationship declared as *name*."""
        return self._relationship(name).create_association(self, attributes, guard_attributes)
