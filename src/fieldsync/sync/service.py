"""High-level sync service with an explicit start/close lifecycle."""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from fieldsync.config import SyncConfig
from fieldsync.errors import ServiceNotReadyError
from fieldsync.storage.base import FeatureStore
from fieldsync.sync import connections
from fieldsync.sync.batch import BatchCallbacks, BatchCoordinator
from fieldsync.sync.classifier import classify, compute_statistics, validate_prerequisites
from fieldsync.sync.context import SyncContext, build_context
from fieldsync.sync.models import (
    BatchResult,
    ConnectionReport,
    PrerequisiteReport,
    SyncStatistics,
    WorkItem,
)
from fieldsync.sync.orchestrator import PhotoSyncOrchestrator

logger = logging.getLogger(__name__)


class ServiceState(Enum):
    """Lifecycle state of a SyncService."""

    CREATED = "created"
    READY = "ready"
    CLOSED = "closed"


class SyncService:
    """Entry point tying the classifier, orchestrator and batch coordinator together.

    The service must be started before any operation is accepted; starting
    builds the transports once and wires them into a single SyncContext.

    Example:
        async with SyncService(config, store) as service:
            report = service.check()
            if report.valid:
                result = await service.sync()
    """

    def __init__(
        self,
        config: SyncConfig,
        store: FeatureStore | None = None,
        context: SyncContext | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Frozen sync configuration
            store: Layer to read photos from and write URLs back to
            context: Prebuilt collaborators; built from config on start if omitted
        """
        self.config = config
        self.store = store if store is not None or context is None else context.store
        self._context = context
        self._coordinator: BatchCoordinator | None = None
        self._state = ServiceState.CREATED

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def context(self) -> SyncContext:
        self._require_ready()
        return self._context

    async def start(self) -> None:
        """Build collaborators and accept operations."""
        if self._state is ServiceState.READY:
            return
        if self._state is ServiceState.CLOSED:
            raise ServiceNotReadyError("Service has been closed")

        if self._context is None:
            self._context = build_context(self.config, self.store)
        self._coordinator = BatchCoordinator(PhotoSyncOrchestrator(self._context))
        self._state = ServiceState.READY
        logger.info(
            "Sync service ready",
            extra={"mode": self.config.mode.value, "upload_enabled": self._context.uploader is not None},
        )

    def _require_ready(self) -> None:
        if self._state is not ServiceState.READY:
            raise ServiceNotReadyError(f"Service is {self._state.value}, call start() first")

    def check(self) -> PrerequisiteReport:
        """Run all preflight checks against the configuration and layer."""
        self._require_ready()
        return validate_prerequisites(self.config, self.store)

    def statistics(self) -> SyncStatistics:
        """Count total, pending and synced photos on the layer."""
        self._require_ready()
        if self.store is None:
            return SyncStatistics()
        return compute_statistics(self.store.features(), self.config.photo_field)

    def pending_items(self) -> list[WorkItem]:
        """Work items for the current mode, in layer order."""
        self._require_ready()
        if self.store is None:
            return []
        return classify(self.store.features(), self.config.photo_field, self.config.mode)

    async def sync(self, callbacks: BatchCallbacks | None = None) -> BatchResult:
        """Validate, classify and sync every pending photo.

        Preflight problems stop the run before any network call; the result
        then has no items and ``aborted`` lists every problem found.
        """
        self._require_ready()
        report = self.check()
        if not report.valid:
            result = BatchResult(aborted="Preflight validation failed: " + "; ".join(report.errors))
            logger.error(result.aborted)
            if callbacks and callbacks.on_batch_complete:
                try:
                    callbacks.on_batch_complete(result)
                except Exception:
                    logger.exception("on_batch_complete callback failed")
            return result

        return await self._coordinator.run_batch(self.pending_items(), callbacks)

    async def test_connections(
        self, on_complete: Callable[[ConnectionReport], None] | None = None
    ) -> ConnectionReport:
        """Probe the WebDAV store and the API concurrently."""
        self._require_ready()
        return await connections.test_connections(self._context, on_complete)

    def request_stop(self) -> None:
        """Ask a running batch to stop before its next photo."""
        if self._coordinator is not None:
            self._coordinator.request_stop()

    async def close(self) -> None:
        """Release transports. The service cannot be restarted."""
        if self._state is ServiceState.CLOSED:
            return
        if self._context is not None:
            await self._context.close()
        self._state = ServiceState.CLOSED

    async def __aenter__(self) -> "SyncService":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
