from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, Final


if sys.version_info >= (3, 11):
    from typing import TypedDict, Unpack
else:
    from typing_extensions import TypedDict, Unpack

import sqlalchemy as sa

from .conditions import Clause, ConditionLike, add_condition, create_conditions, normalize_conditions, qualify
from .datastructures import frozendict
from .eager import AliasingPolicy, load_eagerly
from .exceptions import ConfigurationError
from .finder import VALID_OPTIONS as FINDER_OPTIONS
from .finder import IncludeLike, find
from .inflector import classify, keyify, underscore
from .joins import construct_inner_join
from .keys import (
    KeyPair,
    LookupPlan,
    RelationshipKind,
    infer_join_table,
    normalize_keys,
    resolve_key_pair,
)
from .registry import Registry
from .through import resolve_through


if TYPE_CHECKING:
    from .model import Model
    from .table import Table


logger = logging.getLogger(__name__)


class RelationshipOptions(TypedDict, total=False):
    class_name: str
    class_: type[Model]
    foreign_key: str | Sequence[str]
    primary_key: str | Sequence[str]
    conditions: ConditionLike | Sequence[ConditionLike]
    select: str
    readonly: bool
    namespace: str
    aliasing: AliasingPolicy | str
    order: str
    group: str
    having: str
    limit: int
    offset: int
    through: str
    source: str
    join_table: str
    association_foreign_key: str | Sequence[str]
    association_primary_key: str | Sequence[str]


_COMMON_OPTIONS: Final[frozenset[str]] = frozenset({
    "class_name",
    "class_",
    "foreign_key",
    "conditions",
    "select",
    "readonly",
    "namespace",
    "aliasing",
})


class Relationship:
    """Base for the relationship descriptors declared on a ``Model``.

    A relationship is declared once per model class and shared by all of its
    instances. Reading the attribute on an instance loads the related
    record(s) on first access and caches them on that instance; assigning
    replaces the cached value.

    The variant set is closed: ``HasMany``, ``HasOne``, ``BelongsTo`` and
    ``HasAndBelongsToMany``. Direction-dependent behaviour dispatches on
    ``kind``.

    Args:
        attribute_name: Name of the attribute, when it differs from the name
            the descriptor is assigned to.
        **options: See ``RelationshipOptions``. Options outside the variant's
            whitelist are dropped.

    Raises:
        ConfigurationError: If ``class_`` is not a ``Model`` subclass. A
            ``class_name`` may name a model declared later, so it is only
            looked up in the registry when the target is first needed; an
            unknown name raises ``ConfigurationError`` from ``target_class``.
    """

    kind: ClassVar[RelationshipKind]
    valid_options: ClassVar[frozenset[str]] = frozenset()

    __slots__ = (
        "_class_name",
        "_keys",
        "_plans",
        "_target",
        "attribute_name",
        "conditions",
        "foreign_key",
        "options",
        "owner",
        "primary_key",
    )

    def __init__(self, attribute_name: str | None = None, /, **options: Unpack[RelationshipOptions]) -> None:
        self.attribute_name: str = underscore(attribute_name) if attribute_name else ""
        self.options: frozendict[str, Any] = self._merge_options(options)
        self.conditions: tuple[Clause, ...] = normalize_conditions(self.options.get("conditions"))
        self.foreign_key = normalize_keys(self.options.get("foreign_key"))
        self.primary_key = normalize_keys(self.options.get("primary_key"))
        self.owner: type[Model] | None = None
        self._class_name: str | None = self.options.get("class_name")
        self._target: type[Model] | None = None
        self._keys: dict[type[Model], KeyPair] = {}
        self._plans: dict[type[Model], LookupPlan] = {}

        if (target := self.options.get("class_")) is not None:
            self._set_target_class(target)

    @classmethod
    def _merge_options(cls, options: Mapping[str, Any]) -> frozendict[str, Any]:
        allowed = _COMMON_OPTIONS | cls.valid_options
        if dropped := sorted(set(options) - allowed):
            logger.debug("Dropping unsupported %s option(s): %s", cls.__name__, ", ".join(dropped))

        return frozendict((key, value) for key, value in options.items() if key in allowed)

    def __set_name__(self, owner: type[Model], name: str) -> None:
        if not self.attribute_name:
            self.attribute_name = underscore(name)
        self.owner = owner

    def __get__(self, instance: Model | None, owner: type[Model] | None = None) -> Any:
        if instance is None:
            return self

        return instance.read_relationship(self.attribute_name)

    def __set__(self, instance: Model, value: Any) -> None:
        instance.set_relationship(self.attribute_name, value)

    def __repr__(self) -> str:
        owner = self.owner.__name__ if self.owner is not None else "?"
        return f"<{type(self).__name__} {owner}.{self.attribute_name} -> {self.class_name}>"

    def is_poly(self) -> bool:
        """Whether the relationship holds a collection rather than one record."""
        return self.kind.is_plural

    @property
    def through(self) -> str | None:
        return self.options.get("through")

    @property
    def class_name(self) -> str:
        """Name of the target model, explicit or inferred from the attribute name."""
        if self._target is not None:
            return self._target.__name__

        if self._class_name:
            return self._class_name

        if source := self.options.get("source"):
            return classify(source, singular=True)

        if not self.attribute_name:
            raise ConfigurationError(f"{type(self).__name__} has no attribute name to infer its target from")

        return classify(self.attribute_name, singular=self.is_poly())

    @property
    def target_class(self) -> type[Model]:
        """The target model class, looked up in the registry on first use.

        Raises:
            ConfigurationError: If no registered model matches ``class_name``.
        """
        if self._target is None:
            self._set_target_class(Registry().resolve(self.class_name, self.options.get("namespace")))

        assert self._target is not None
        return self._target

    def _set_target_class(self, target: Any) -> None:
        from .model import Model

        if not (isinstance(target, type) and issubclass(target, Model)):
            raise ConfigurationError(f"{target!r} must extend from Model")

        self._target = target

    def get_table(self) -> Table:
        """Table metadata of the target model."""
        return self.target_class.table()

    def resolve_keys(self, owner: type[Model]) -> KeyPair:
        """Foreign/primary key pair for *owner*, memoized per owner class."""
        if (keys := self._keys.get(owner)) is None:
            keys = self._keys[owner] = resolve_key_pair(
                self.kind,
                owner,
                self.class_name,
                self.get_table,
                self.foreign_key,
                self.primary_key,
            )

        return keys

    def lookup_plan(self, owner: type[Model]) -> LookupPlan:
        """How related rows are found for owners of class *owner* (memoized)."""
        if (plan := self._plans.get(owner)) is None:
            plan = self._plans[owner] = self._build_lookup_plan(owner)

        return plan

    def _build_lookup_plan(self, owner: type[Model]) -> LookupPlan:
        if self.through:
            return resolve_through(self, owner.table())

        keys = self.resolve_keys(owner)

        match self.kind:
            case RelationshipKind.BELONGS_TO:
                target_name = self.get_table().get_fully_qualified_table_name()
                return LookupPlan(
                    filter_keys=tuple(qualify(target_name, key) for key in keys.primary_key),
                    value_keys=keys.foreign_key,
                    group_keys=_column_names(keys.primary_key),
                )

            case RelationshipKind.HAS_AND_BELONGS_TO_MANY:
                join_table = self.join_table
                return LookupPlan(
                    filter_keys=tuple(qualify(join_table, key) for key in keys.foreign_key),
                    value_keys=keys.primary_key,
                    joins=construct_inner_join(owner.table(), self, using_through=True),
                )

            case _:
                target_name = self.get_table().get_fully_qualified_table_name()
                return LookupPlan(
                    filter_keys=tuple(qualify(target_name, key) for key in keys.foreign_key),
                    value_keys=keys.primary_key,
                    group_keys=_column_names(keys.foreign_key),
                )

    def finder_options(self, plan: LookupPlan) -> dict[str, Any]:
        """Static finder options, with the plan's join when it needs one."""
        options = dict(self.options.only(FINDER_OPTIONS).without("conditions"))
        if plan.joins:
            options["joins"] = plan.joins

        return options

    def construct_inner_join_sql(
        self,
        from_table: Table,
        using_through: bool = False,
        alias: str | None = None,
    ) -> str:
        """Inner join reaching this relationship's target from *from_table*."""
        return construct_inner_join(from_table, self, using_through=using_through, alias=alias)

    def load(self, owner: Model) -> Model | list[Model] | None:
        """Load the related record(s) for one owner.

        Returns ``None`` (singular) or ``[]`` (plural) without querying when
        every key value on the owner is ``None``.
        """
        plan = self.lookup_plan(type(owner))
        values = owner.get_values_for(plan.value_keys)
        condition = create_conditions(plan.filter_keys, [values[key] for key in plan.value_keys])
        if condition is None:
            return [] if self.is_poly() else None

        options = self.finder_options(plan)
        options["conditions"] = add_condition(*self.conditions, condition)

        if self.is_poly():
            return find(self.target_class, "all", options)

        return find(self.target_class, "first", options)

    def load_eagerly(
        self,
        owners: Sequence[Model],
        attribute_snapshots: Sequence[Mapping[str, Any]],
        includes: IncludeLike | None,
        table: Table,
    ) -> None:
        """Load this relationship for all *owners* in one query; see ``eager.load_eagerly``."""
        load_eagerly(self, owners, attribute_snapshots, includes, table)

    def build_association(
        self,
        owner: Model,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        """Instantiate a related record linked to *owner* without saving it.

        The key linking the record to *owner* is assigned unguarded; with
        ``guard_attributes`` the caller's *attributes* go through mass
        assignment protection, otherwise they are merged over the key. Plural
        relationships append the record to the owner's collection, singular
        ones replace the owner's related record.
        """
        record = self._instantiate(owner, attributes or {}, guard_attributes)
        self._attach(owner, record)

        return record

    def create_association(
        self,
        owner: Model,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        """Like ``build_association``, then save the record.

        BelongsTo also copies the new record's key onto *owner*;
        HasAndBelongsToMany also inserts the join-table row.
        """
        record = self._instantiate(owner, attributes or {}, guard_attributes)
        self._attach(owner, record)
        record.save()

        return record

    def _instantiate(self, owner: Model, attributes: Mapping[str, Any], guard_attributes: bool) -> Model:
        target = self.target_class
        seed: dict[str, Any] = {}
        if self.kind.key_on_target and not self.through:
            keys = self.resolve_keys(type(owner))
            seed = dict(zip(keys.foreign_key, (owner.read_attribute(key) for key in keys.primary_key)))

        if not guard_attributes:
            return target({**seed, **attributes}, guard_attributes=False)

        record = target(seed, guard_attributes=False)
        record.set_attributes(attributes)

        return record

    def _attach(self, owner: Model, record: Model) -> None:
        if self.is_poly():
            owner.read_relationship(self.attribute_name).append(record)
        else:
            owner.set_relationship(self.attribute_name, record)


class HasMany(Relationship):
    """One-to-many relationship; the foreign key lives on the target table.

    Example::

        class School(Model):
            people = HasMany()

        class Order(Model):
            payments = HasMany()
            people = HasMany(through="payments", conditions="payments.amount < 200")
    """

    kind = RelationshipKind.HAS_MANY
    valid_options = frozenset({
        "primary_key",
        "order",
        "group",
        "having",
        "limit",
        "offset",
        "through",
        "source",
    })

    __slots__ = ()

    def through_join_keys(self) -> KeyPair:
        """Physical key pair joining the target to an intermediate table by convention."""
        return KeyPair((keyify(self.class_name),), self.get_table().pk)


class HasOne(HasMany):
    """One-to-one relationship; the foreign key lives on the target table."""

    kind = RelationshipKind.HAS_ONE

    __slots__ = ()


class BelongsTo(Relationship):
    """Many-to-one relationship; the foreign key lives on the owner.

    Example::

        class Person(Model):
            school = BelongsTo()
            alma_mater = BelongsTo(class_name="School", foreign_key="alma_mater_id")
    """

    kind = RelationshipKind.BELONGS_TO
    valid_options = frozenset({"primary_key"})

    __slots__ = ()

    def create_association(
        self,
        owner: Model,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        record = super().create_association(owner, attributes, guard_attributes)
        keys = self.resolve_keys(type(owner))
        for foreign_key, primary_key in zip(keys.foreign_key, keys.primary_key):
            owner.assign_attribute(foreign_key, record.read_attribute(primary_key))

        return record


class HasAndBelongsToMany(Relationship):
    """Many-to-many relationship through a join table without a model.

    The join table defaults to both tableized type names sorted and joined
    with ``_`` (``Student``/``Course`` -> ``courses_students``). It holds
    ``foreign_key`` (owner side) and ``association_foreign_key`` (target side).
    """

    kind = RelationshipKind.HAS_AND_BELONGS_TO_MANY
    valid_options = frozenset({
        "join_table",
        "primary_key",
        "association_foreign_key",
        "association_primary_key",
        "order",
        "group",
        "having",
        "limit",
        "offset",
    })

    __slots__ = ("_join_table", "association_foreign_key", "association_primary_key")

    def __init__(self, attribute_name: str | None = None, /, **options: Unpack[RelationshipOptions]) -> None:
        super().__init__(attribute_name, **options)
        self._join_table: str | None = self.options.get("join_table")
        self.association_foreign_key = normalize_keys(self.options.get("association_foreign_key"))
        self.association_primary_key = normalize_keys(self.options.get("association_primary_key"))

    def __set_name__(self, owner: type[Model], name: str) -> None:
        super().__set_name__(owner, name)
        if self._join_table is None:
            self._join_table = infer_join_table(owner.__name__, self.class_name)

    @property
    def join_table(self) -> str:
        if self._join_table is None:
            raise ConfigurationError(f"{self!r} is not attached to a model; pass join_table explicitly")

        return self._join_table

    def association_keys(self) -> KeyPair:
        """Join-table column(s) referencing the target and the target key(s) they reference."""
        return KeyPair(
            self.association_foreign_key or (keyify(self.class_name),),
            self.association_primary_key or self.get_table().pk,
        )

    def create_association(
        self,
        owner: Model,
        attributes: Mapping[str, Any] | None = None,
        guard_attributes: bool = True,
    ) -> Model:
        record = super().create_association(owner, attributes, guard_attributes)
        self._insert_join_row(owner, record)

        return record

    def _insert_join_row(self, owner: Model, record: Model) -> None:
        keys = self.resolve_keys(type(owner))
        association = self.association_keys()
        values = {
            **{fk: owner.read_attribute(pk) for fk, pk in zip(keys.foreign_key, keys.primary_key)},
            **{fk: record.read_attribute(pk) for fk, pk in zip(association.foreign_key, association.primary_key)},
        }
        schema, _, name = self.join_table.rpartition(".")
        join_table = sa.table(name, *(sa.column(column) for column in values), schema=schema or None)
        owner.table().conn.execute(sa.insert(join_table).values(**values))


def _column_names(keys: Sequence[str]) -> tuple[str, ...]:
    return tuple(key.rpartition(".")[2] for key in keys)
