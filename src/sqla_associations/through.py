from __future__ import annotations

from typing import TYPE_CHECKING, Final

from .conditions import qualify
from .exceptions import AssociationConfigurationError, ConfigurationError
from .inflector import singularize
from .joins import JoinSpec, construct_inner_join, render_inner_join
from .keys import LookupPlan, RelationshipKind


if TYPE_CHECKING:
    from .relationships import Relationship
    from .table import Table


_THROUGH_KINDS: Final = frozenset({RelationshipKind.HAS_MANY, RelationshipKind.BELONGS_TO})


def resolve_through(relationship: Relationship, owner_table: Table) -> LookupPlan:
    """Plan a ``through`` lookup as one query joining the target to the intermediate.

    The intermediate relationship is looked up on the owner's table and must
    be a direct BelongsTo or HasMany. If the target model declares a
    relationship of the same name, both must point at the same table.

    The physical join (target to intermediate) and the logical filter
    (intermediate columns compared with owner values) are computed from
    explicit key pairs; neither relationship is modified.

    Raises:
        AssociationConfigurationError: If the intermediate is missing, of the
            wrong kind, itself a through relationship, disagrees with the
            target's declaration, or if *relationship* is singular.
    """
    owner_name = owner_table.model.__name__
    name = relationship.through
    assert name is not None

    if not relationship.is_poly():
        raise AssociationConfigurationError(
            f"{owner_name}.{relationship.attribute_name}: through is only valid on plural relationships"
        )

    intermediate_rel = owner_table.get_relationship(name)
    if intermediate_rel is None:
        raise AssociationConfigurationError(f"Could not find the association {name!r} in model {owner_name}")

    if intermediate_rel.kind not in _THROUGH_KINDS:
        raise AssociationConfigurationError(
            f"{owner_name}.{relationship.attribute_name}: has_many through can only use "
            f"a belongs_to or has_many association, {name!r} is {intermediate_rel.kind.value}"
        )

    if intermediate_rel.through:
        raise AssociationConfigurationError(
            f"{owner_name}.{relationship.attribute_name}: {name!r} is itself a through association"
        )

    try:
        intermediate = intermediate_rel.get_table()
        target = relationship.get_table()
        mirrored = target.get_relationship(name)
        mirrored_model = mirrored.get_table().model if mirrored is not None else None
    except ConfigurationError as exc:
        raise AssociationConfigurationError(
            f"{owner_name}.{relationship.attribute_name}: cannot resolve through {name!r}: {exc}"
        ) from exc

    if mirrored_model is not None and mirrored_model is not intermediate.model:
        raise AssociationConfigurationError(
            f"{owner_name}.{name} points at {intermediate.model.__name__} but "
            f"{target.model.__name__}.{name} points at {mirrored_model.__name__}"
        )

    keys = intermediate_rel.resolve_keys(owner_table.model)
    if intermediate_rel.kind is RelationshipKind.HAS_MANY:
        filter_keys, value_keys = keys.foreign_key, keys.primary_key
    else:
        filter_keys, value_keys = keys.primary_key, keys.foreign_key

    intermediate_name = intermediate.get_fully_qualified_table_name()

    return LookupPlan(
        filter_keys=tuple(qualify(intermediate_name, key) for key in filter_keys),
        value_keys=value_keys,
        joins=_physical_join(relationship, intermediate, target),
    )


def _physical_join(relationship: Relationship, intermediate: Table, target: Table) -> str:
    source = _find_source(relationship, intermediate, target)
    if source is None:
        return construct_inner_join(intermediate, relationship, using_through=True)

    keys = source.resolve_keys(intermediate.model)
    intermediate_name = intermediate.get_fully_qualified_table_name()
    target_name = target.get_fully_qualified_table_name()

    if source.kind is RelationshipKind.BELONGS_TO:
        spec = JoinSpec(intermediate_name, keys.foreign_key, target_name, keys.primary_key)
    else:
        spec = JoinSpec(intermediate_name, keys.primary_key, target_name, keys.foreign_key)

    return render_inner_join(spec)


def _find_source(relationship: Relationship, intermediate: Table, target: Table) -> Relationship | None:
    """The intermediate's own relationship pointing at the target, if declared."""
    attribute_name = relationship.attribute_name or ""
    candidates = (relationship.options.get("source"), singularize(attribute_name), attribute_name)

    for name in dict.fromkeys(candidate for candidate in candidates if candidate):
        source = intermediate.get_relationship(name)
        if (
            source is None
            or source.through
            or source.kind is RelationshipKind.HAS_AND_BELONGS_TO_MANY
        ):
            continue

        if source.get_table().model is target.model:
            return source

    return None
