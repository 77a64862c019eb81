"""Error taxonomy for the transaction list engine.

The pipeline and selection engine never raise. The scheduler and the bulk
coordinator report failures through callbacks and result objects, using the
types defined here so callers can tell a rejected patch from a stale record
from a failed network call.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for engine and collaborator errors."""


class ValidationError(LedgerError, ValueError):
    """Malformed input, rejected before any side effect."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(LedgerError):
    """The collaborator rejected an update, e.g. because the record is stale."""

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        super().__init__(message)
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class TransportError(LedgerError):
    """A collaborator call failed or was rejected."""


class ActionError(LedgerError):
    """Wraps a failure value that was not an exception."""


def normalize_error(error: object) -> Exception:
    """Turn any failure value into an exception.

    Exceptions pass through untouched; anything else (an error string from a
    result object, ``None``, a custom value) is wrapped in ``ActionError``
    carrying its string form.
    """
    if isinstance(error, Exception):
        return error
    return ActionError(str(error))
