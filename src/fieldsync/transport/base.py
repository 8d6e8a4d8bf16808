"""Transport contracts and shared HTTP error mapping."""

from typing import Any, Protocol, runtime_checkable

import httpx

from fieldsync.errors import NetworkError, RequestTimeoutError, SyncError


@runtime_checkable
class UploadTransport(Protocol):
    """Object store accepting PUT uploads (WebDAV-like)."""

    def remote_url_for(self, local_path: str, global_id: str) -> str: ...

    async def exists(self, remote_url: str) -> bool: ...

    async def put(self, local_path: str, remote_url: str) -> None: ...

    async def health_check(self) -> None: ...


@runtime_checkable
class DatabaseTransport(Protocol):
    """REST API that records photo URLs against features."""

    async def update_record(
        self, global_id: str, url: str, table: str, field: str
    ) -> dict[str, Any]: ...

    async def health_check(self) -> None: ...


def parse_error_message(response: httpx.Response) -> str:
    """Extract a readable error from a JSON error body, else the status line."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        for key in ("error", "detail", "message"):
            if data.get(key):
                return str(data[key])

    return f"HTTP {response.status_code}: {response.reason_phrase}"


def transport_error(error: httpx.HTTPError, timeout_message: str, network_message: str) -> SyncError:
    """Map an httpx exception onto the sync error taxonomy."""
    if isinstance(error, httpx.TimeoutException):
        return RequestTimeoutError(timeout_message)
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"{network_message}: {error}")
    return SyncError(f"HTTP error: {error}")
