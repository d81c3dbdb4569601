from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, ClassVar, final

import sqlalchemy as sa

from .connection import Connection
from .datastructures import frozendict
from .exceptions import ConfigurationError


if TYPE_CHECKING:
    from .model import Model


@final
class Registry:
    """Singleton mapping model type names to model classes.

    Every concrete ``Model`` subclass registers itself here when its class
    body is executed. Relationships name their targets with strings
    (``class_name="Person"``) and resolve them through this registry on first
    use, which lets a model reference another that is declared later in the
    same module.

    Each model is reachable under its short name (``"Person"``) and under its
    namespaced name (``"myapp.models.Person"``). A short name shared by two
    models is ambiguous and must be resolved with a namespace.

    The registry also holds the connection used by the finder.
    """

    __instance: ClassVar[Registry | None] = None
    _models: dict[str, type[Model]]
    _short_names: dict[str, list[type[Model]]]
    _connection: Connection | None

    def __new__(cls) -> Registry:
        if cls.__instance is None:
            instance = super().__new__(cls)
            instance._models = {}
            instance._short_names = {}
            instance._connection = None
            cls.__instance = instance

        return cls.__instance

    def register(self, model: type[Model]) -> None:
        """Register *model* under its short and namespaced names.

        Re-registering a class with the same namespaced name replaces the
        previous entry.
        """
        full_name = _full_name(model)
        previous = self._models.get(full_name)
        self._models[full_name] = model

        candidates = self._short_names.setdefault(model.__name__, [])
        if previous is not None and previous in candidates:
            candidates.remove(previous)
        candidates.append(model)

    def get(self, name: str, namespace: str | None = None) -> type[Model] | None:
        """Look up a model by name, returning ``None`` if it is not registered.

        Args:
            name: Short (``"Person"``) or namespaced (``"app.models.Person"``) name.
            namespace: Optional module prefix tried before the bare name.

        Raises:
            ConfigurationError: If a short name matches more than one model.
        """
        if namespace and (model := self._models.get(f"{namespace}.{name}")) is not None:
            return model

        if (model := self._models.get(name)) is not None:
            return model

        candidates = self._short_names.get(name, ())
        if len(candidates) > 1:
            names = ", ".join(sorted(_full_name(m) for m in candidates))
            raise ConfigurationError(
                f"Model name {name!r} is ambiguous ({names}); pass a namespace"
            )

        return candidates[0] if candidates else None

    def resolve(self, name: str, namespace: str | None = None) -> type[Model]:
        """Look up a model by name, raising ``ConfigurationError`` if unknown."""
        if (model := self.get(name, namespace)) is None:
            where = f" in namespace {namespace!r}" if namespace else ""
            raise ConfigurationError(f"No model named {name!r} is registered{where}")

        return model

    def __getitem__(self, name: str) -> type[Model]:
        """Look up a model by its namespaced name, raising ``KeyError`` if not found."""
        return self._models[name]

    def __contains__(self, name: object) -> bool:
        return name in self._models or name in self._short_names

    @property
    def models(self) -> Mapping[str, type[Model]]:
        """Namespaced name to model class (read-only snapshot)."""
        return frozendict(self._models)

    def bind(self, connection: Connection | sa.Connection) -> None:
        """Bind the connection used to execute finder queries."""
        if not isinstance(connection, Connection):
            connection = Connection(connection)

        self._connection = connection

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise RuntimeError("Registry is not bound to a connection; call init_registry()")

        return self._connection

    @classmethod
    def reset(cls) -> None:
        """Destroy the singleton, dropping every registration (primarily for tests)."""
        cls.__instance = None


def _full_name(model: type) -> str:
    return f"{model.__module__}.{model.__qualname__}"


def init_registry(connection: Connection | sa.Connection) -> None:
    """Bind the global registry to *connection*.

    Call once the application has opened its connection, before the first
    finder call or relationship load.

    Example:
        >>> engine = sa.create_engine("sqlite://")
        >>> with engine.connect() as conn:
        ...     init_registry(conn)
        ...     School.first().people
    """
    Registry().bind(connection)
