"""Concurrent health checks for the WebDAV store and the sync API."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fieldsync.errors import SyncError
from fieldsync.sync.context import SyncContext
from fieldsync.sync.models import ConnectionReport, ProbeResult
from fieldsync.sync.orchestrator import with_ceiling

logger = logging.getLogger(__name__)


async def _probe(check: Callable[[], Awaitable[None]] | None, timeout: float, name: str) -> ProbeResult:
    if check is None:
        return ProbeResult(success=False, error=f"{name} not configured")
    try:
        await with_ceiling(check(), timeout, "Connection timeout")
    except SyncError as e:
        logger.warning("%s connection test failed: %s", name, e.message)
        return ProbeResult(success=False, error=e.message)
    except Exception as e:
        logger.exception("%s connection test raised", name)
        return ProbeResult(success=False, error=f"Connection error: {e}")
    return ProbeResult(success=True)


async def test_connections(
    context: SyncContext,
    on_complete: Callable[[ConnectionReport], None] | None = None,
) -> ConnectionReport:
    """Probe both endpoints concurrently.

    Resolves once both probes have reported; ``on_complete`` fires exactly
    once with the combined report, whichever probe finishes last.
    """
    timeout = context.config.health_timeout
    uploader = context.uploader
    webdav, api = await asyncio.gather(
        _probe(uploader.health_check if uploader else None, timeout, "WebDAV"),
        _probe(context.database.health_check, timeout, "API"),
    )
    report = ConnectionReport(webdav=webdav, api=api)
    if on_complete:
        on_complete(report)
    return report
