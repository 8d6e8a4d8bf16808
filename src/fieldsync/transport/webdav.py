"""Async WebDAV client for photo uploads."""

import logging
import mimetypes
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from fieldsync import __version__
from fieldsync.errors import AuthError, ErrorKind, SyncError
from fieldsync.transport.base import parse_error_message, transport_error

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255


def sanitize_filename(filename: str) -> str:
    """Make a filename safe for a WebDAV path segment."""
    if not filename:
        return ""
    cleaned = re.sub(r"[/\\]", "_", filename)
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned[:MAX_FILENAME_LENGTH]


def generate_photo_filename(global_id: str, extension: str = "jpg", now: datetime | None = None) -> str:
    """Build a unique filename from a global id and a UTC timestamp."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%d_%H-%M-%S-") + f"{now.microsecond // 1000:03d}"
    return f"{sanitize_filename(global_id)}_{timestamp}.{extension or 'jpg'}"


def local_filename(local_path: str) -> str:
    """Return the last path segment of a Windows or POSIX path, or file:// URL."""
    path = local_path.removeprefix("file://")
    return path.replace("\\", "/").rstrip("/").split("/")[-1]


class WebDavClient:
    """Async WebDAV client with HTTP Basic auth.

    Uses a single httpx.AsyncClient for connection pooling. Uploads are a
    single PUT of the whole file; duplicates are detected with a HEAD probe.
    No retries happen here: the orchestrator decides what to retry.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 120.0,
        health_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: WebDAV collection URL that photos are uploaded into
            username: Basic auth username
            password: Basic auth password
            timeout: Upload request timeout in seconds
            health_timeout: Timeout for the connection test in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout

        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth(username, password),
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": f"fieldsync/{__version__}"},
            transport=transport,
        )

    def remote_url_for(self, local_path: str, global_id: str) -> str:
        """Remote URL a local photo is stored under.

        The name is the global id plus the original filename: stable across
        re-runs, and distinct for same-named photos of different features.
        A generated name is used only when the path has no filename.
        """
        filename = sanitize_filename(local_filename(local_path))
        if filename:
            filename = sanitize_filename(f"{global_id}_{filename}")
        else:
            filename = generate_photo_filename(global_id, Path(local_path).suffix.lstrip(".").lower())
        return f"{self.base_url}/{filename}"

    async def exists(self, remote_url: str) -> bool:
        """Check whether an object already exists at remote_url.

        Raises:
            AuthError: Credentials rejected
            SyncError: Any other failure, tagged with its ErrorKind
        """
        try:
            response = await self._client.head(remote_url)
        except httpx.HTTPError as e:
            raise transport_error(e, "Existence check timeout", "Network error") from e

        if response.status_code in (200, 207):
            return True
        if response.status_code == 404:
            return False
        if response.status_code == 401:
            raise AuthError("Authentication failed - check username/password")
        raise SyncError(parse_error_message(response))

    async def put(self, local_path: str, remote_url: str) -> None:
        """Upload a local file to remote_url.

        Raises:
            SyncError: Unreadable local file, network failure, timeout,
                auth failure or a non-2xx response
        """
        path = Path(local_path.removeprefix("file://"))
        try:
            content = path.read_bytes()
        except OSError as e:
            raise SyncError(f"Cannot read local file {local_path}: {e}", ErrorKind.OTHER) from e

        content_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        try:
            response = await self._client.put(
                remote_url,
                content=content,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "Upload timeout", "Network error during upload") from e

        if response.status_code in (200, 201, 204):
            logger.debug("Uploaded %s (%d bytes) to %s", path.name, len(content), remote_url)
            return
        if response.status_code == 401:
            raise AuthError("Authentication failed - check username/password")
        raise SyncError(parse_error_message(response))

    async def health_check(self) -> None:
        """Probe the collection URL.

        200/207/404 all prove the server is reachable and accepts the
        credentials (404 is normal for an empty root).
        """
        try:
            response = await self._client.head(
                self.base_url,
                timeout=httpx.Timeout(self.health_timeout),
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "Connection timeout", "Network error - cannot reach server") from e

        if response.status_code in (200, 207, 404):
            return
        if response.status_code == 401:
            raise AuthError("Authentication failed - check username/password")
        raise SyncError(parse_error_message(response))

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "WebDavClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
