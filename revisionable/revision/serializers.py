"""Serializers for revisions - display-ready views for presentation layers."""

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.orm import Session

from revisionable.db.models import Revision
from revisionable.revision.registry import EntityRegistry


class RevisionView(BaseModel):
    """A revision with its display values resolved.

    Attributes:
        id: Revision ID
        entity_type: Type name of the tracked entity
        entity_id: Primary key of the tracked entity
        key: Changed field as stored
        field_name: Field name with any "_id" reference marker removed
        old_value: Raw stored value before the change
        new_value: Raw stored value after the change
        old_display: Resolved, formatted value before the change
        new_display: Resolved, formatted value after the change
        actor_id: ID of the actor responsible for the change
        created_at: When the change was recorded
    """

    id: int
    entity_type: str
    entity_id: str
    key: str
    field_name: str
    old_value: str | None = None
    new_value: str | None = None
    old_display: str
    new_display: str
    actor_id: str | None = None
    created_at: datetime


def build_revision_view(
    revision: Revision,
    session: Session | None = None,
    registry: EntityRegistry | None = None,
) -> RevisionView:
    """Resolve a revision's display values into a RevisionView.

    Args:
        revision: Revision to present
        session: Session used for foreign key lookups (defaults to the revision's session)
        registry: Registry used for lookups and formatting (defaults to the global registry)

    Returns:
        RevisionView for the revision
    """
    return RevisionView(
        id=revision.id,
        entity_type=revision.entity_type,
        entity_id=revision.entity_id,
        key=revision.key,
        field_name=revision.field_name(),
        old_value=revision.old_value,
        new_value=revision.new_value,
        old_display=revision.resolved_old_value(session=session, registry=registry),
        new_display=revision.resolved_new_value(session=session, registry=registry),
        actor_id=revision.actor_id,
        created_at=revision.created_at,
    )


def serialize_revision(
    revision: Revision,
    session: Session | None = None,
    registry: EntityRegistry | None = None,
) -> dict:
    """Serialize a revision to a JSON-serializable dict with display values."""
    return build_revision_view(revision, session=session, registry=registry).model_dump(mode="json")
