"""
Error taxonomy for spanner-pitr.

Every error carries the process exit code the CLI reports for it.
"""

from enum import Enum
from typing import Optional

from google.api_core import exceptions as api_exceptions

from config.settings import (
    EXIT_CONFIG,
    EXIT_QUERY,
    EXIT_RANGE,
    EXIT_TRANSIENT,
)


class ErrorKind(Enum):
    """Kinds of terminal failure a search can report."""

    CONFIG = "config"
    QUERY = "query"
    RANGE = "range"
    TRANSIENT = "transient"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    ErrorKind.CONFIG: EXIT_CONFIG,
    ErrorKind.QUERY: EXIT_QUERY,
    ErrorKind.RANGE: EXIT_RANGE,
    ErrorKind.TRANSIENT: EXIT_TRANSIENT,
}


class PitrError(Exception):
    """Base class for all spanner-pitr errors."""

    kind: ErrorKind = ErrorKind.CONFIG

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code


class ConfigError(PitrError):
    """Invalid window, accuracy, instant or credentials. Raised before any evaluation."""

    kind = ErrorKind.CONFIG


class EvalError(PitrError):
    """Failure while evaluating the check query at an instant."""


class QueryError(EvalError):
    """Check query is malformed or does not return a single boolean."""

    kind = ErrorKind.QUERY


class RangeError(EvalError):
    """Requested instant predates the database's retention horizon."""

    kind = ErrorKind.RANGE


class TransientError(EvalError):
    """Network or backend failure, including per-call timeouts. Retryable."""

    kind = ErrorKind.TRANSIENT


# Spanner reports stale reads beyond the GC horizon as FAILED_PRECONDITION
STALENESS_MARKER = "exceeded the maximum timestamp staleness"
TABLE_NOT_FOUND_MARKER = "Table not found"

_TRANSIENT_API_ERRORS = (
    api_exceptions.DeadlineExceeded,
    api_exceptions.ServiceUnavailable,
    api_exceptions.InternalServerError,
    api_exceptions.Aborted,
    api_exceptions.ResourceExhausted,
    api_exceptions.Unknown,
    api_exceptions.RetryError,
)


def classify_api_error(exc: Exception) -> EvalError:
    """
    Map a Google API client exception onto the evaluation error taxonomy.

    Args:
        exc: Exception raised by the Spanner client

    Returns:
        QueryError, RangeError or TransientError wrapping the original message
    """
    message = getattr(exc, "message", None) or str(exc)

    if STALENESS_MARKER in message:
        return RangeError(message)
    if isinstance(exc, _TRANSIENT_API_ERRORS):
        return TransientError(message)
    if isinstance(exc, api_exceptions.OutOfRange):
        return RangeError(message)
    if isinstance(exc, api_exceptions.GoogleAPICallError):
        return QueryError(message)
    return TransientError(message)


def is_missing_table(exc: Exception) -> bool:
    """True if the API error reports a table that does not exist at the read timestamp."""
    message: Optional[str] = getattr(exc, "message", None) or str(exc)
    return TABLE_NOT_FOUND_MARKER in message
