"""Repository functions for revision persistence.

Handles creating and querying revision entries.
Single responsibility: database operations only.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from revisionable.db.models import Revision


def create_revision(
    session: Session,
    *,
    entity_type: str,
    entity_id: str,
    key: str,
    old_value: str | None,
    new_value: str | None,
    actor_id: str | None = None,
) -> Revision:
    """Create a revision entry.

    Args:
        session: Database session
        entity_type: Type name of the tracked entity
        entity_id: Primary key of the tracked entity, as text
        key: Changed field
        old_value: Serialized value before the change
        new_value: Serialized value after the change
        actor_id: ID of the actor responsible for the change

    Returns:
        Created Revision instance (flushed, not committed)
    """
    revision = Revision(
        entity_type=entity_type,
        entity_id=entity_id,
        key=key,
        old_value=old_value,
        new_value=new_value,
        actor_id=actor_id,
    )
    session.add(revision)
    session.flush()
    return revision


def list_revisions(
    session: Session,
    *,
    entity_type: str,
    entity_id: str,
) -> list[Revision]:
    """List revisions of one tracked entity, newest first.

    Args:
        session: Database session
        entity_type: Type name of the tracked entity
        entity_id: Primary key of the tracked entity, as text

    Returns:
        List of Revision instances, ordered by created_at DESC
    """
    query = (
        select(Revision)
        .where(
            Revision.entity_type == entity_type,
            Revision.entity_id == entity_id,
        )
        .order_by(Revision.created_at.desc(), Revision.id.desc())
    )
    return list(session.execute(query).scalars().all())


def list_revisions_for_key(
    session: Session,
    *,
    entity_type: str,
    entity_id: str,
    key: str,
) -> list[Revision]:
    """List revisions of a single field of one tracked entity, newest first."""
    query = (
        select(Revision)
        .where(
            Revision.entity_type == entity_type,
            Revision.entity_id == entity_id,
            Revision.key == key,
        )
        .order_by(Revision.created_at.desc(), Revision.id.desc())
    )
    return list(session.execute(query).scalars().all())


def list_revisions_by_actor(
    session: Session,
    actor_id: str,
) -> list[Revision]:
    """List every revision made by an actor, newest first."""
    query = (
        select(Revision)
        .where(Revision.actor_id == actor_id)
        .order_by(Revision.created_at.desc(), Revision.id.desc())
    )
    return list(session.execute(query).scalars().all())
