"""Value types flowing through the sync pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from fieldsync.errors import ErrorKind, SyncError

T = TypeVar("T")


class SyncStage(Enum):
    """Stage of one work item in the orchestrator's state machine."""

    START = "start"
    UPLOADING = "uploading"
    CONFIRMING = "confirming"
    COMMITTING = "committing"
    DONE = "done"


@dataclass(frozen=True)
class WorkItem:
    """One photo waiting to be synced.

    Exactly one of ``source_path`` (local file, needs upload) or
    ``remote_url`` (already on the store, needs database confirmation) is set.
    ``feature_ref`` is owned by the feature store and only ever handed back
    to it.
    """

    feature_ref: Any
    global_id: str
    source_path: str | None = None
    remote_url: str | None = None

    def __post_init__(self) -> None:
        if (self.source_path is None) == (self.remote_url is None):
            raise ValueError("WorkItem needs exactly one of source_path or remote_url")

    @property
    def needs_upload(self) -> bool:
        return self.source_path is not None


@dataclass(frozen=True)
class Success(Generic[T]):
    """Step finished; ``payload`` feeds the next step."""

    payload: T

    ok = True


@dataclass(frozen=True)
class Failure:
    """Step failed; later steps are skipped."""

    kind: ErrorKind
    reason: str

    ok = False

    @classmethod
    def from_error(cls, error: SyncError) -> "Failure":
        return cls(kind=error.kind, reason=error.message)


StepOutcome = Success | Failure


@dataclass(frozen=True)
class ItemResult:
    """Terminal outcome for one work item."""

    global_id: str
    success: bool
    resolved_url: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run.

    Invariants: ``succeeded + failed == total`` and ``len(errors) == failed``.
    ``errors`` holds ``{"global_id": ..., "error": ...}`` entries in the order
    the failures happened.
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[dict[str, str | None]] = field(default_factory=list)
    aborted: str | None = None

    def record(self, result: ItemResult) -> None:
        """Append one item outcome."""
        self.total += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1
            self.errors.append({"global_id": result.global_id, "error": result.error})

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": list(self.errors),
            "aborted": self.aborted,
        }


@dataclass(frozen=True)
class SyncStatistics:
    """Photo attribute counts for a layer."""

    total: int = 0
    pending: int = 0
    synced: int = 0


@dataclass(frozen=True)
class ConfigValidation:
    """Result of checking required configuration keys."""

    valid: bool
    missing: list[str]


@dataclass(frozen=True)
class PrerequisiteReport:
    """Every configuration, URL and schema problem found before a batch."""

    valid: bool
    errors: list[str]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one health check."""

    success: bool
    error: str | None = None


@dataclass(frozen=True)
class ConnectionReport:
    """Combined result of the WebDAV and API health checks."""

    webdav: ProbeResult
    api: ProbeResult

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {
            "webdav": {"success": self.webdav.success, "error": self.webdav.error},
            "api": {"success": self.api.success, "error": self.api.error},
        }
