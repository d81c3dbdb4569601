"""Declarative associations for a small active-record layer on SQLAlchemy Core.

sqla_associations resolves ``HasMany``, ``HasOne``, ``BelongsTo`` and
``HasAndBelongsToMany`` relationships declared on ``Model`` subclasses. Bind a
connection once with ``init_registry``; related records then load on first
attribute access, or for a whole result set in one query per relationship
through the finder's ``include`` option. Key and table names are inferred
from type names unless given explicitly.
"""

from ._version import __version__, __version_tuple__
from .conditions import add_condition, create_conditions, create_membership_conditions
from .connection import Connection
from .datastructures import frozendict
from .eager import AliasingPolicy, RelatedPool
from .exceptions import (
    AssociationConfigurationError,
    AssociationError,
    ConfigurationError,
    ReadOnlyModelError,
    UndefinedRelationshipError,
)
from .finder import find
from .inflector import (
    association_cache_clear,
    association_cache_info,
    classify,
    keyify,
    pluralize,
    singularize,
    tableize,
)
from .joins import JoinSpec, construct_inner_join, render_inner_join
from .keys import KeyPair, RelationshipKind
from .model import Model
from .registry import Registry, init_registry
from .relationships import BelongsTo, HasAndBelongsToMany, HasMany, HasOne, Relationship
from .table import Table


__all__ = (
    "AliasingPolicy",
    "AssociationConfigurationError",
    "AssociationError",
    "BelongsTo",
    "ConfigurationError",
    "Connection",
    "HasAndBelongsToMany",
    "HasMany",
    "HasOne",
    "JoinSpec",
    "KeyPair",
    "Model",
    "ReadOnlyModelError",
    "Registry",
    "RelatedPool",
    "Relationship",
    "RelationshipKind",
    "Table",
    "UndefinedRelationshipError",
    "__version__",
    "__version_tuple__",
    "add_condition",
    "association_cache_clear",
    "association_cache_info",
    "classify",
    "construct_inner_join",
    "create_conditions",
    "create_membership_conditions",
    "find",
    "frozendict",
    "init_registry",
    "keyify",
    "pluralize",
    "render_inner_join",
    "singularize",
    "tableize",
)
