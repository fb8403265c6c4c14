"""Domain exceptions raised by the state engine.

Operations raise these and never return error codes.  Callers decide how to
surface them: the sync controller turns store failures into
``SyncStatus.error``, the CLI lets migration parse failures propagate.
"""

from __future__ import annotations


class StateError(Exception):
    """Base class for every engine error."""


class ValidationError(StateError, ValueError):
    """A command referenced an id that does not exist (workspace, page, column, card)."""


class NotFoundError(ValidationError, LookupError):
    """An item to move or update is not present where the command expected it."""


class InvariantViolation(StateError):
    """A command would break a structural invariant (e.g. deleting the last workspace)."""


class MigrationParseError(StateError, ValueError):
    """Persisted input is not parseable JSON at all."""


class SyncError(StateError):
    """Remote store read or write failed."""
