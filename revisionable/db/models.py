from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy import DateTime, Index, Integer, String, Text, event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, object_session

from revisionable.config.settings import settings
from revisionable.revision.errors import RelatedModelNotFoundError, RevisionError, RevisionImmutableError
from revisionable.revision.formatter import format_field
from revisionable.revision.registry import EntityRegistry, LookupStatus
from revisionable.revision.registry import registry as default_registry

FOREIGN_KEY_MARKER = "_id"


class Base(DeclarativeBase):
    """Base class for all database models."""


class Revision(Base):
    """A single field change of a tracked entity.

    Stores:
    - entity_type: Type name of the tracked entity (its model class name)
    - entity_id: Primary key of the tracked entity, as text
    - key: Name of the changed field; keys containing "_id" reference another entity
    - old_value / new_value: Raw scalar values, serialized to text (nullable)
    - actor_id: ID of the actor responsible for the change (nullable)
    - created_at: Timestamp when the change was recorded

    Revisions are append-only: rows are never updated once flushed.
    """

    __tablename__ = "revisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    key: Mapped[str] = mapped_column(String, nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_revisions_entity", "entity_type", "entity_id"),  # History of one tracked entity
    )

    def __repr__(self) -> str:
        return f"<Revision {self.entity_type}#{self.entity_id} {self.key}: {self.old_value!r} -> {self.new_value!r}>"

    def is_foreign_key(self) -> bool:
        """Whether the key looks like a reference to another entity.

        Any "_id" after the first character counts, not only a suffix, so
        "grid_identifier" is treated as a reference too.
        """
        return self.key.find(FOREIGN_KEY_MARKER) > 0

    def field_name(self) -> str:
        """Return the key with "_id" removed when it references another entity.

        "author_id" becomes "author", which is also the type name used to
        resolve the related record.
        """
        if self.is_foreign_key():
            return self.key.replace(FOREIGN_KEY_MARKER, "")
        return self.key

    def resolved_old_value(self, session: Session | None = None, registry: EntityRegistry | None = None) -> str:
        """Display string for the value before the change."""
        return self._resolve_value(self.old_value, session, registry)

    def resolved_new_value(self, session: Session | None = None, registry: EntityRegistry | None = None) -> str:
        """Display string for the value after the change."""
        return self._resolve_value(self.new_value, session, registry)

    def _resolve_value(self, raw: str | None, session: Session | None, registry: EntityRegistry | None) -> str:
        if raw is None or len(raw) == 0:
            return settings.revision_null_string

        registry = registry or default_registry

        if not self.is_foreign_key():
            return _display(self.format(self.key, raw, registry=registry))

        result = registry.find(session or object_session(self), self.field_name(), raw)
        if result.status == LookupStatus.FOUND:
            return _display(self.format(self.key, _identifiable_name(result.entity), registry=registry))
        if result.status == LookupStatus.ERROR:
            logger.warning(
                f"Could not resolve {self.field_name()} {raw!r} for revision {self.id} "
                f"({self.entity_type}#{self.entity_id}.{self.key}): {type(result.error).__name__}: {result.error}"
            )
        return _display(self.format(self.key, settings.revision_unknown_string, registry=registry))

    def format(self, key: str, value: Any, registry: EntityRegistry | None = None) -> Any:
        """Format a value using the owning entity type's formatting rules.

        Args:
            key: Field key whose rule applies
            value: Value to format
            registry: Registry used to find the owning model class

        Returns:
            Formatted display string, or the value unchanged when the owning
            model has no rule for the key or no model class is registered
            for the owning type

        Raises:
            FormattingConfigError: If the configured rule is invalid
        """
        registry = registry or default_registry
        try:
            model = registry.model_class(self.entity_type)
        except RelatedModelNotFoundError as e:
            logger.warning(f"Revision {self.id} of {self.entity_type} left unformatted: {e.message}")
            return value

        rules = getattr(model, "revision_formatted_fields", None) or {}
        if key in rules:
            return format_field(key, value, rules)
        return value

    def user_responsible(self, session: Session | None = None, registry: EntityRegistry | None = None) -> Any | None:
        """Resolve the actor responsible for this change.

        Returns:
            The actor record, or None if actor_id is empty or no such actor exists

        Raises:
            RelatedModelNotFoundError: If the configured actor model is not registered
            RevisionError: If no session is given and the revision is detached
        """
        registry = registry or default_registry
        finder = registry.resolve(settings.revision_actor_model)
        if self.actor_id is None:
            return None
        return finder.find_by_id(self._session_for(session, "actor"), self.actor_id)

    def revisionable(self, session: Session | None = None, registry: EntityRegistry | None = None) -> Any | None:
        """Return the tracked entity this revision belongs to, if it still exists."""
        registry = registry or default_registry
        finder = registry.resolve(self.entity_type)
        return finder.find_by_id(self._session_for(session, self.entity_type), self.entity_id)

    def _session_for(self, session: Session | None, target: str) -> Session:
        session = session or object_session(self)
        if session is None:
            raise RevisionError(f"No session available to resolve {target} of detached revision {self.id}")
        return session


def _display(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _identifiable_name(entity: Any) -> Any:
    if hasattr(entity, "identifiable_name"):
        return entity.identifiable_name()
    identity = sa_inspect(entity).identity
    return identity[0] if identity and len(identity) == 1 else identity


@event.listens_for(Revision, "before_update")
def _prevent_revision_update(mapper, connection, target: Revision) -> None:
    """Reject UPDATE statements for revision rows."""
    raise RevisionImmutableError(target.id)
