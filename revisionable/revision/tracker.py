"""RevisionTracker - wraps a model save with revision capture and emission.

    tracker = RevisionTracker()
    post.title = "New title"
    tracker.save(session, post, actor_id=current_user.id)

Save sequence:
1. before_save: snapshot persisted and pending values and the dirty fields
2. delegate: add + commit the entity (failures propagate, nothing is recorded)
3. after_save: for updates only, one Revision per changed revisionable field

Revisions are written one commit at a time after the entity is committed.
A failure part-way leaves earlier revisions and the entity save in place.

Changes are read from attribute history, which a flush resets. With an
autoflush session, a query run between the assignment and save() flushes the
change early and no revision is recorded for it; use autoflush=False or
session.no_autoflush around such queries.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.orm import Session

from revisionable.db.models import Revision
from revisionable.revision.mixin import RevisionableMixin
from revisionable.revision.repository import create_revision

ActorProvider = Callable[[], Any]

SCALAR_TYPES = (str, int, float, bool, Decimal)


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, SCALAR_TYPES)


def serialize_scalar(value: Any) -> str | None:
    """Serialize a scalar field value for the revisions table."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


@dataclass
class SaveState:
    """Transient tracking state for one save.

    Attributes:
        original: Persisted values before the save, keyed by attribute
        pending: In-memory values about to be saved, keyed by attribute
        dirty: Attributes that differ from their persisted value
        is_updating: Whether the entity already existed before the save
    """

    original: dict[str, Any] = field(default_factory=dict)
    pending: dict[str, Any] = field(default_factory=dict)
    dirty: set[str] = field(default_factory=set)
    is_updating: bool = False


class RevisionTracker:
    """Save pipeline that records field-level revisions of tracked models."""

    def __init__(self, actor_provider: ActorProvider | None = None) -> None:
        """Initialize tracker.

        Args:
            actor_provider: Optional callable returning the current actor ID,
                used when save() is called without an explicit actor_id
        """
        self.actor_provider = actor_provider

    def save(self, session: Session, entity: RevisionableMixin, *, actor_id: Any = None) -> list[Revision]:
        """Save an entity and record a revision for each changed field.

        Args:
            session: Database session
            entity: Tracked model instance
            actor_id: ID of the actor making the change; falls back to the
                actor provider, then to None

        Returns:
            Revisions written by this save (empty for creations)
        """
        state = self.before_save(session, entity)

        session.add(entity)
        try:
            session.commit()
        except Exception as e:
            logger.error(f"Saving {type(entity).__name__} failed, no revisions recorded: {e}")
            session.rollback()
            raise

        return self.after_save(session, entity, state, actor_id=actor_id)

    def before_save(self, session: Session, entity: RevisionableMixin) -> SaveState | None:
        """Capture the tracking state of an entity before it is saved.

        Returns:
            The captured state, or None when revisions are disabled for the model
        """
        if not entity.revision_enabled:
            return None

        state = sa_inspect(entity)
        save_state = SaveState(is_updating=state.has_identity)
        unloaded: list[str] = []

        with session.no_autoflush:
            for prop in state.mapper.column_attrs:
                key = prop.key
                attr = state.attrs[key]
                history = attr.history
                if history.deleted:
                    save_state.original[key] = history.deleted[0]
                    save_state.dirty.add(key)
                elif history.added:
                    save_state.dirty.add(key)
                    if history.unchanged:
                        save_state.original[key] = history.unchanged[0]
                    elif save_state.is_updating:
                        unloaded.append(key)
                elif history.unchanged:
                    save_state.original[key] = history.unchanged[0]
                save_state.pending[key] = attr.value

            if unloaded:
                self._load_persisted_values(session, entity, unloaded, save_state)

        for key in list(save_state.pending):
            if not is_scalar(save_state.pending[key]) or not is_scalar(save_state.original.get(key)):
                save_state.pending.pop(key)
                save_state.original.pop(key, None)
                save_state.dirty.discard(key)

        logger.debug(
            f"Captured {type(entity).__name__} before save: updating={save_state.is_updating}, dirty={sorted(save_state.dirty)}"
        )
        if save_state.is_updating and not save_state.dirty:
            logger.debug(
                f"{type(entity).__name__}#{entity.revision_key()} has no unflushed changes; "
                f"changes already flushed by the session are not recorded"
            )
        return save_state

    def _load_persisted_values(self, session: Session, entity: RevisionableMixin, keys: list[str], save_state: SaveState) -> None:
        """Read previous values of changed attributes that were never loaded."""
        state = sa_inspect(entity)
        model = type(entity)
        conditions = [column == value for column, value in zip(state.mapper.primary_key, state.identity, strict=True)]
        query = select(*[getattr(model, key) for key in keys]).where(*conditions)
        row = session.execute(query).one_or_none()
        if row is None:
            return
        for key, value in zip(keys, row, strict=True):
            save_state.original[key] = value
            if value == save_state.pending.get(key):
                save_state.dirty.discard(key)

    def changed_revisionable_fields(self, entity: RevisionableMixin, save_state: SaveState) -> dict[str, Any]:
        """Changed fields that the entity's policy says to keep revisions of.

        Snapshot entries of fields that are not kept are dropped.
        """
        fields: dict[str, Any] = {}
        for key in list(save_state.pending):
            if key not in save_state.dirty:
                continue
            if entity.is_revisionable(key):
                fields[key] = save_state.pending[key]
            else:
                save_state.pending.pop(key)
                save_state.original.pop(key, None)
        return fields

    def after_save(
        self,
        session: Session,
        entity: RevisionableMixin,
        save_state: SaveState | None,
        *,
        actor_id: Any = None,
    ) -> list[Revision]:
        """Write one revision per changed revisionable field of an updated entity."""
        if save_state is None or not entity.revision_enabled or not save_state.is_updating:
            return []

        changes = self.changed_revisionable_fields(entity, save_state)
        if not changes:
            return []

        if actor_id is None and self.actor_provider is not None:
            actor_id = self.actor_provider()

        entity_type = entity.revision_type_name()
        entity_id = entity.revision_key()
        logger.debug(f"Recording {len(changes)} revision(s) for {entity_type}#{entity_id}: {list(changes)}")

        revisions: list[Revision] = []
        for key, new_value in changes.items():
            try:
                revision = create_revision(
                    session,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    key=key,
                    old_value=serialize_scalar(save_state.original.get(key)),
                    new_value=serialize_scalar(new_value),
                    actor_id=None if actor_id is None else str(actor_id),
                )
                session.commit()
            except Exception as e:
                logger.error(
                    f"Failed to record revision of {entity_type}#{entity_id}.{key} "
                    f"after {len(revisions)} of {len(changes)} were written: {e}"
                )
                session.rollback()
                raise
            revisions.append(revision)

        return revisions
