"""Sync core: classification, per-photo pipeline and batch coordination."""

from fieldsync.sync.batch import BatchCallbacks, BatchCoordinator
from fieldsync.sync.classifier import (
    classify,
    compute_statistics,
    is_local_path,
    validate_configuration,
    validate_prerequisites,
)
from fieldsync.sync.connections import test_connections
from fieldsync.sync.context import SyncContext, build_context
from fieldsync.sync.models import BatchResult, ItemResult, WorkItem
from fieldsync.sync.orchestrator import PhotoSyncOrchestrator
from fieldsync.sync.service import ServiceState, SyncService

__all__ = [
    "BatchCallbacks",
    "BatchCoordinator",
    "BatchResult",
    "ItemResult",
    "PhotoSyncOrchestrator",
    "ServiceState",
    "SyncContext",
    "SyncService",
    "WorkItem",
    "build_context",
    "classify",
    "compute_statistics",
    "is_local_path",
    "test_connections",
    "validate_configuration",
    "validate_prerequisites",
]
