"""Error types for the revision module.

Distinct error types to separate setup defects from write failures.
"""


class RevisionError(Exception):
    """Base class for revisioning errors."""


class RelatedModelNotFoundError(RevisionError):
    """Raised when a type name does not resolve to a registered model.

    This is a configuration error: the host application never registered
    the model (e.g. the actor model, or a model referenced by an `_id` key).
    """

    def __init__(self, model_name: str, message: str | None = None):
        self.model_name = model_name
        self.message = message or f"The model {model_name} was not found."
        super().__init__(self.message)


class FormattingConfigError(RevisionError):
    """Raised when a field formatting rule is unknown or cannot be applied."""

    def __init__(self, key: str, rule: object, message: str | None = None):
        self.key = key
        self.rule = rule
        self.message = message or f"Unsupported formatting rule for field '{key}': {rule!r}"
        super().__init__(self.message)


class RevisionImmutableError(RevisionError):
    """Raised when a persisted revision entry is about to be updated."""

    def __init__(self, revision_id: int | None):
        self.revision_id = revision_id
        super().__init__(f"Revision {revision_id} is immutable and cannot be updated")
