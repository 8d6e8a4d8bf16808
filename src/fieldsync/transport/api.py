"""Async client for the photo sync REST API."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from fieldsync import __version__
from fieldsync.errors import (
    AuthError,
    MalformedResponseError,
    NotFoundError,
    SyncError,
)
from fieldsync.transport.base import parse_error_message, transport_error

logger = logging.getLogger(__name__)


class PhotoApiClient:
    """Client for the API that stores photo URLs in the central database.

    All requests carry a Bearer token. Errors are raised as SyncError
    subclasses tagged with an ErrorKind; nothing is retried here.

    Example:
        async with PhotoApiClient("https://sync.example.com", token) as api:
            await api.update_record("a1b2", url, "design.verify_poles", "photo")
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        status_timeout: float = 15.0,
        health_timeout: float = 10.0,
        batch_timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API base URL (e.g., https://sync.example.com)
            token: API bearer token
            timeout: Timeout for single-record updates in seconds
            status_timeout: Timeout for status lookups in seconds
            health_timeout: Timeout for the health check in seconds
            batch_timeout: Timeout for batch updates in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.status_timeout = status_timeout
        self.health_timeout = health_timeout
        self.batch_timeout = batch_timeout

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": f"fieldsync/{__version__}",
            },
            transport=transport,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Failed to parse response: {e}") from e

    async def update_record(
        self, global_id: str, url: str, table: str, field: str
    ) -> dict[str, Any]:
        """Write a photo URL into the database record of a feature.

        Returns:
            The API's JSON response

        Raises:
            NotFoundError: No record with that global id
            AuthError: Token rejected
            RequestTimeoutError: Request timed out
            NetworkError: API unreachable
            MalformedResponseError: 200 with an unparseable body
            SyncError: Any other error status
        """
        payload = {"global_id": global_id, "photo_url": url, "table": table, "field": field}
        try:
            response = await self._client.post(
                f"{self.base_url}/api/v1/photos/update", json=payload
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "API request timeout", "Network error - cannot reach API") from e

        if response.status_code == 200:
            data = self._json(response)
            logger.debug("Database updated for %s", global_id)
            return data
        if response.status_code == 404:
            raise NotFoundError("Feature not found in database")
        if response.status_code == 401:
            raise AuthError("Authentication failed - check API token")
        raise SyncError(parse_error_message(response))

    async def batch_update(self, updates: list[dict[str, str]]) -> dict[str, Any]:
        """Send several updates in one request.

        Args:
            updates: Dicts with global_id, photo_url, table and field keys

        Returns:
            The API's JSON response (``updated`` / ``failed`` counts)
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/api/v1/photos/batch-update",
                json={"updates": updates},
                timeout=httpx.Timeout(self.batch_timeout),
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "Batch update timeout", "Network error - cannot reach API") from e

        if response.status_code == 200:
            data = self._json(response)
            logger.info(
                "Batch update complete: %s succeeded, %s failed",
                data.get("updated"), data.get("failed"),
            )
            return data
        if response.status_code == 401:
            raise AuthError("Authentication failed - check API token")
        raise SyncError(parse_error_message(response))

    async def get_status(self, global_id: str, table: str) -> dict[str, Any]:
        """Look up the stored photo status for one feature."""
        try:
            response = await self._client.get(
                f"{self.base_url}/api/v1/photos/status/{quote(global_id, safe='')}",
                params={"table": table},
                timeout=httpx.Timeout(self.status_timeout),
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "Request timeout", "Network error") from e

        if response.status_code == 200:
            return self._json(response)
        if response.status_code == 404:
            raise NotFoundError("Feature not found")
        if response.status_code == 401:
            raise AuthError("Authentication failed - check API token")
        raise SyncError(parse_error_message(response))

    async def health_check(self) -> None:
        """Check that the API is up and reports ``{"status": "ok"}``."""
        try:
            response = await self._client.get(
                f"{self.base_url}/health",
                timeout=httpx.Timeout(self.health_timeout),
            )
        except httpx.HTTPError as e:
            raise transport_error(e, "Connection timeout", "Network error - cannot reach API") from e

        if response.status_code != 200:
            raise SyncError(parse_error_message(response))
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("Invalid API response") from e
        if not isinstance(data, dict) or data.get("status") != "ok":
            raise SyncError("API health check failed")

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "PhotoApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
