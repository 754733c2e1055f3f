"""RevisionableMixin - per-model revision configuration.

Add the mixin to a mapped model and configure it with class attributes:

    class Post(RevisionableMixin, Base):
        __tablename__ = "posts"

        keep_revision_of = ["title", "status"]
        revision_formatted_fields = {"status": "options:draft=Draft|live=Live"}

Saving goes through RevisionTracker; the mixin only answers policy questions
and exposes the history.
"""

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from revisionable.revision.formatter import FormattingRule
from revisionable.revision.repository import list_revisions

if TYPE_CHECKING:
    from revisionable.db.models import Revision


class RevisionableMixin:
    """Marks a model as tracked and carries its revision policy."""

    revision_enabled: ClassVar[bool] = True
    keep_revision_of: ClassVar[list[str]] = []
    dont_keep_revision_of: ClassVar[list[str]] = []
    revision_formatted_fields: ClassVar[dict[str, FormattingRule]] = {}

    @classmethod
    def revision_type_name(cls) -> str:
        return cls.__name__

    def is_revisionable(self, key: str) -> bool:
        """Check if a revision should be kept for this field.

        Explicitly included fields are tracked and explicitly excluded fields
        are not. Anything else is tracked only when no inclusion list is set.
        """
        if key in self.keep_revision_of:
            return True
        if key in self.dont_keep_revision_of:
            return False
        return not self.keep_revision_of

    def disable_revision_field(self, field: str | list[str]) -> None:
        """Stop keeping revisions of one field or a list of fields on this instance."""
        fields = list(field) if isinstance(field, (list, tuple, set)) else [field]
        # Assigning on the instance leaves the class-level list untouched
        self.dont_keep_revision_of = [*fields, *self.dont_keep_revision_of]

    def identifiable_name(self) -> Any:
        """Name shown when this record is referenced by another model's revision.

        Defaults to the primary key; override to show something readable.
        """
        identity = sa_inspect(self).identity
        if identity is None:
            return None
        return identity[0] if len(identity) == 1 else identity

    def revision_key(self) -> str | None:
        """Primary key as stored in Revision.entity_id, or None before the first save."""
        identity = sa_inspect(self).identity
        if identity is None:
            return None
        return str(identity[0]) if len(identity) == 1 else ",".join(str(part) for part in identity)

    def revision_history(self, session: Session | None = None) -> list["Revision"]:
        """All revisions of this record, newest first."""
        entity_id = self.revision_key()
        if entity_id is None:
            return []
        return list_revisions(
            session or sa_inspect(self).session,
            entity_type=self.revision_type_name(),
            entity_id=entity_id,
        )
