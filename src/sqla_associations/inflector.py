from __future__ import annotations

from functools import lru_cache
from typing import Any

import inflection


def demodulize(type_name: str) -> str:
    """Strip any ``package.module.`` prefix from a type name."""
    return type_name.rpartition(".")[2]


@lru_cache(maxsize=1024)
def pluralize(word: str) -> str:
    return inflection.pluralize(word)


@lru_cache(maxsize=1024)
def singularize(word: str) -> str:
    return inflection.singularize(word)


@lru_cache(maxsize=1024)
def underscore(word: str) -> str:
    return inflection.underscore(word)


@lru_cache(maxsize=1024)
def camelize(word: str) -> str:
    return inflection.camelize(word)


@lru_cache(maxsize=1024)
def _classify(name: str, singular: bool) -> str:
    """Turn an attribute or table name into a type name (cached)."""
    base = underscore(demodulize(name))
    return camelize(singularize(base) if singular else base)


@lru_cache(maxsize=1024)
def _tableize(type_name: str) -> str:
    """Turn a type name into its conventional table name (cached)."""
    return inflection.tableize(demodulize(type_name))


@lru_cache(maxsize=1024)
def _keyify(type_name: str) -> str:
    """Turn a type name into its conventional foreign-key column (cached)."""
    return f"{underscore(demodulize(type_name))}_id"


def classify(name: str, *, singular: bool = True) -> str:
    """Derive a model type name from an attribute name.

    Args:
        name: Attribute or table name, e.g. ``"people"`` or ``"school"``.
        singular: Singularize before camelizing. Plural relationships pass
            ``True``; singular ones pass ``False`` so names like ``"status"``
            are left alone.

    Returns:
        The camel-cased type name, e.g. ``"Person"``.
    """
    return _classify(name, singular)


def tableize(type_name: str) -> str:
    """Return the conventional table name for *type_name* (``"Person"`` -> ``"people"``)."""
    return _tableize(type_name)


def keyify(type_name: str) -> str:
    """Return the conventional foreign-key column for *type_name*.

    Any namespace prefix is dropped: ``"shop.OrderLine"`` -> ``"order_line_id"``.
    """
    return _keyify(type_name)


_CACHED = (pluralize, singularize, underscore, camelize, _classify, _tableize, _keyify)


def association_cache_info() -> dict[str, Any]:
    """Return LRU cache statistics for the inflection helpers."""
    return {fn.__name__: fn.cache_info() for fn in _CACHED}


def association_cache_clear() -> None:
    """Clear the inflection helper caches."""
    for fn in _CACHED:
        fn.cache_clear()
