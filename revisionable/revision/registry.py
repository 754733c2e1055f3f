"""EntityRegistry - resolves type names to finders.

Revisions store the tracked entity's type as a string and reference related
records through `<type>_id` keys. The registry maps those names to finders
explicitly, populated once at startup:

    registry.register_models(Base)
    registry.register_finder("legacy_user", LegacyUserFinder())

Names are matched ignoring case and underscores, so "blog_post", "BlogPost"
and "blogpost" resolve to the same entry.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DeclarativeBase, Session

from revisionable.revision.errors import RelatedModelNotFoundError


class LookupStatus(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a find-by-id lookup.

    Attributes:
        status: Whether the record was found, missing, or the lookup failed
        entity: The record when status is FOUND
        error: The failure cause when status is ERROR
    """

    status: LookupStatus
    entity: Any = None
    error: Exception | None = None

    @classmethod
    def found(cls, entity: Any) -> "LookupResult":
        return cls(status=LookupStatus.FOUND, entity=entity)

    @classmethod
    def not_found(cls) -> "LookupResult":
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: Exception) -> "LookupResult":
        return cls(status=LookupStatus.ERROR, error=error)


class EntityFinder(Protocol):
    def find_by_id(self, session: Session, entity_id: Any) -> Any | None: ...


class ModelFinder:
    """Finder for a mapped SQLAlchemy model, using the session identity map."""

    def __init__(self, model: type) -> None:
        self.model = model

    def _coerce_id(self, entity_id: Any) -> Any:
        primary_key = sa_inspect(self.model).primary_key
        if len(primary_key) != 1 or not isinstance(entity_id, str):
            return entity_id
        try:
            python_type = primary_key[0].type.python_type
        except NotImplementedError:
            return entity_id
        return python_type(entity_id)

    def find_by_id(self, session: Session, entity_id: Any) -> Any | None:
        try:
            coerced = self._coerce_id(entity_id)
        except (TypeError, ValueError):
            # A non-numeric value in an integer key cannot match any row
            return None
        return session.get(self.model, coerced)


def normalize_name(name: str) -> str:
    return name.replace("_", "").lower()


@dataclass
class _Entry:
    finder: EntityFinder
    model: type | None


class EntityRegistry:
    """Explicit mapping of type names to finders and model classes."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def register_model(self, model: type, name: str | None = None) -> None:
        """Register a mapped model under its class name (or an explicit name)."""
        type_name = name or model.__name__
        self._entries[normalize_name(type_name)] = _Entry(finder=ModelFinder(model), model=model)
        logger.debug(f"Registered model {model.__name__} as '{type_name}'")

    def register_finder(self, name: str, finder: EntityFinder, model: type | None = None) -> None:
        """Register a custom finder, optionally with the model class it returns."""
        self._entries[normalize_name(name)] = _Entry(finder=finder, model=model)
        logger.debug(f"Registered finder {type(finder).__name__} as '{name}'")

    def register_models(self, base: type[DeclarativeBase]) -> None:
        """Register every class mapped on a declarative base."""
        for mapper in base.registry.mappers:
            self.register_model(mapper.class_)

    def _entry(self, name: str) -> _Entry:
        entry = self._entries.get(normalize_name(name))
        if entry is None:
            raise RelatedModelNotFoundError(name)
        return entry

    def resolve(self, name: str) -> EntityFinder:
        """Return the finder registered for a type name.

        Raises:
            RelatedModelNotFoundError: If no type is registered under the name
        """
        return self._entry(name).finder

    def model_class(self, name: str) -> type:
        """Return the model class registered for a type name.

        Raises:
            RelatedModelNotFoundError: If no model class is registered under the name
        """
        model = self._entry(name).model
        if model is None:
            raise RelatedModelNotFoundError(name, f"The finder registered as {name} has no model class.")
        return model

    def find(self, session: Session | None, name: str, entity_id: Any) -> LookupResult:
        """Look up a record by type name and id without raising.

        Args:
            session: Session used by the finder; None yields an ERROR result
            name: Registered type name
            entity_id: Identifier of the record (often the raw stored text)

        Returns:
            FOUND with the record, NOT_FOUND when no such record exists, or
            ERROR when the type is unknown or the finder raised
        """
        if session is None:
            return LookupResult.failed(RuntimeError(f"No session available to look up {name} {entity_id}"))
        try:
            entity = self.resolve(name).find_by_id(session, entity_id)
        except Exception as e:
            return LookupResult.failed(e)
        if entity is None:
            return LookupResult.not_found()
        return LookupResult.found(entity)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._entries


registry = EntityRegistry()
