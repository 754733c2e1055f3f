"""Field-level audit trail for SQLAlchemy models."""

from loguru import logger

from revisionable.core.logger import disable_logging, enable_logging
from revisionable.db.models import Base, Revision
from revisionable.revision.errors import FormattingConfigError, RelatedModelNotFoundError, RevisionError, RevisionImmutableError
from revisionable.revision.formatter import format_field
from revisionable.revision.mixin import RevisionableMixin
from revisionable.revision.registry import EntityRegistry, LookupResult, LookupStatus, registry
from revisionable.revision.serializers import RevisionView, build_revision_view, serialize_revision
from revisionable.revision.tracker import RevisionTracker

logger.disable("revisionable")

__all__ = [
    "Base",
    "EntityRegistry",
    "FormattingConfigError",
    "LookupResult",
    "LookupStatus",
    "RelatedModelNotFoundError",
    "Revision",
    "RevisionError",
    "RevisionImmutableError",
    "RevisionTracker",
    "RevisionView",
    "RevisionableMixin",
    "build_revision_view",
    "disable_logging",
    "enable_logging",
    "format_field",
    "registry",
    "serialize_revision",
]
