"""Explicit collaborator bundle shared by the orchestrator and batch coordinator."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fieldsync.config import SyncConfig
from fieldsync.storage.base import FeatureStore
from fieldsync.transport.api import PhotoApiClient
from fieldsync.transport.base import DatabaseTransport, UploadTransport
from fieldsync.transport.webdav import WebDavClient

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class SyncContext:
    """Everything one sync run needs, constructed once and passed in.

    ``uploader`` is None when no WebDAV store is configured (db-only runs).
    ``sleep`` is the retry backoff primitive; tests swap in a recorder.
    """

    config: SyncConfig
    database: DatabaseTransport
    store: FeatureStore | None = None
    uploader: UploadTransport | None = None
    sleep: Sleep = field(default=asyncio.sleep)

    async def close(self) -> None:
        """Close any transports that hold network resources."""
        for transport in (self.uploader, self.database):
            close = getattr(transport, "close", None)
            if close is not None:
                await close()


def build_context(config: SyncConfig, store: FeatureStore | None = None) -> SyncContext:
    """Create the HTTP transports described by config."""
    uploader = None
    if config.upload_enabled:
        uploader = WebDavClient(
            config.webdav_url,
            config.webdav_username,
            config.webdav_password,
            timeout=config.upload_timeout,
            health_timeout=config.health_timeout,
        )
    database = PhotoApiClient(
        config.api_url,
        config.api_token,
        timeout=config.api_timeout,
        status_timeout=config.status_timeout,
        health_timeout=config.health_timeout,
        batch_timeout=config.batch_timeout,
    )
    return SyncContext(config=config, database=database, store=store, uploader=uploader)
