"""Feature store contract used by the sync core."""

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from fieldsync.errors import LocalCommitError


@dataclass(frozen=True)
class Feature:
    """Read-only view of one feature's attributes.

    ``fid`` is the store's internal feature id; it doubles as the opaque
    ``feature_ref`` handed back to ``set_attribute``.
    """

    fid: int | str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def attribute(self, name: str) -> Any:
        return self.attributes.get(name)


@runtime_checkable
class FeatureStore(Protocol):
    """Vector layer with scoped edit sessions.

    Only one edit session may be open at a time. Implementations raise
    LocalCommitError for any write failure.
    """

    def features(self) -> Sequence[Feature]: ...

    def field_names(self) -> Sequence[str]: ...

    def begin_edit(self) -> None: ...

    def set_attribute(self, feature_ref: Any, field: str, value: Any) -> None: ...

    def commit_edit(self) -> None: ...

    def rollback_edit(self) -> None: ...


@contextmanager
def edit_session(store: FeatureStore) -> Iterator[FeatureStore]:
    """Open an edit session that is committed on success, rolled back otherwise.

    The session is closed on every exit path.
    """
    store.begin_edit()
    try:
        yield store
        store.commit_edit()
    except BaseException:
        store.rollback_edit()
        raise


def wrap_store_error(action: str, error: Exception) -> LocalCommitError:
    """Convert a storage-layer exception into a LocalCommitError."""
    if isinstance(error, LocalCommitError):
        return error
    return LocalCommitError(f"Failed to {action}: {error}")
