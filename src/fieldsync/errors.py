"""Error taxonomy for sync steps.

Every failure carries an ``ErrorKind`` tag set where the failure is produced.
Transports raise ``SyncError`` subclasses; the orchestrator converts them into
step failures so that no raw exception crosses a step boundary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a sync failure."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH_FAILED = "auth_failed"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    VALIDATION = "validation"
    LOCAL_COMMIT = "local_commit"
    OTHER = "other"


class SyncError(Exception):
    """Base exception for all sync failures."""

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)


class NetworkError(SyncError):
    """Endpoint unreachable, DNS failure, connection reset."""

    kind = ErrorKind.NETWORK


class RequestTimeoutError(SyncError):
    """A request or step exceeded its time ceiling."""

    kind = ErrorKind.TIMEOUT


class AuthError(SyncError):
    """Credentials rejected by the remote endpoint (HTTP 401)."""

    kind = ErrorKind.AUTH_FAILED


class NotFoundError(SyncError):
    """Remote record does not exist (HTTP 404)."""

    kind = ErrorKind.NOT_FOUND


class MalformedResponseError(SyncError):
    """Remote endpoint answered with a body that could not be parsed."""

    kind = ErrorKind.MALFORMED


class ConfigValidationError(SyncError):
    """Missing or malformed configuration or dataset schema."""

    kind = ErrorKind.VALIDATION


class LocalCommitError(SyncError):
    """Writing to the local feature store failed."""

    kind = ErrorKind.LOCAL_COMMIT


class ServiceNotReadyError(RuntimeError):
    """An operation was requested before the service finished starting."""
