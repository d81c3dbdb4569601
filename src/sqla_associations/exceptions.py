from __future__ import annotations


class AssociationError(Exception):
    """Base class for every error raised by sqla_associations."""


class ConfigurationError(AssociationError):
    """A relationship or model declaration cannot be resolved.

    Raised when a relationship's target does not resolve to a ``Model``
    subclass, when a type name is unknown or ambiguous in the registry, or when
    resolved key lists are empty or of different lengths.
    """


class AssociationConfigurationError(AssociationError):
    """A ``through`` relationship points at a missing or unusable intermediate.

    Raised on first load rather than at declaration, since the intermediate
    relationship may be declared after the one that goes through it.
    """


class UndefinedRelationshipError(AssociationError, AttributeError):
    """No relationship with the requested name is declared on the model."""


class ReadOnlyModelError(AssociationError):
    """A record loaded with ``readonly=True`` was asked to persist itself."""
