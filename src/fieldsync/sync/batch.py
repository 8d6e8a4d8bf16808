"""Sequential batch runner over the per-photo pipeline."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from fieldsync.logging import log_batch_complete
from fieldsync.sync.models import BatchResult, WorkItem
from fieldsync.sync.orchestrator import PhotoSyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class BatchCallbacks:
    """Optional progress hooks for a batch run.

    on_item_progress(index, total, percent, status)
    on_item_complete(index, success, error)
    on_batch_complete(result)
    """

    on_item_progress: Callable[[int, int, int, str], None] | None = None
    on_item_complete: Callable[[int, bool, str | None], None] | None = None
    on_batch_complete: Callable[[BatchResult], None] | None = None


class BatchCoordinator:
    """Runs work items one at a time and aggregates their outcomes.

    Items are processed strictly in order; item k+1 is not dispatched until
    item k has reached a terminal result, so the remote endpoints only ever
    see one photo in flight. A failed item never stops the batch.

    ``run_batch`` never raises: an unexpected fault in the loop itself (a
    raising callback, for instance) is recorded as one extra failure and the
    partial result is returned with ``aborted`` set.
    """

    def __init__(self, orchestrator: PhotoSyncOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._running = False
        self._stop_requested = False

    @property
    def running(self) -> bool:
        return self._running

    def request_stop(self) -> None:
        """Stop dispatching after the item currently in flight."""
        if self._running:
            self._stop_requested = True

    async def run_batch(
        self, items: Iterable[WorkItem], callbacks: BatchCallbacks | None = None
    ) -> BatchResult:
        """Sync every item in order and return the aggregated result."""
        callbacks = callbacks or BatchCallbacks()

        if self._running:
            logger.warning("Batch rejected: another batch is already running")
            return BatchResult(aborted="Another batch is already running")

        self._running = True
        self._stop_requested = False
        result = BatchResult()
        current_id: str | None = None
        notified = False

        try:
            queue = list(items)
            total = len(queue)
            if total == 0:
                logger.info("No photos to sync")

            for index, item in enumerate(queue):
                if self._stop_requested:
                    result.aborted = f"Stopped after {index} of {total} photo(s)"
                    logger.info(result.aborted)
                    break

                current_id = item.global_id
                if callbacks.on_item_progress:
                    callbacks.on_item_progress(index, total, 0, f"Syncing photo {index + 1} of {total}")

                def report(percent: int, status: str, index: int = index) -> None:
                    if callbacks.on_item_progress:
                        callbacks.on_item_progress(index, total, percent, status)

                item_result = await self.orchestrator.sync_item(item, report)
                result.record(item_result)
                current_id = None

                if callbacks.on_item_complete:
                    callbacks.on_item_complete(index, item_result.success, item_result.error)

            notified = True
            if callbacks.on_batch_complete:
                callbacks.on_batch_complete(result)

        except Exception as e:
            logger.exception("Batch aborted by unexpected error")
            result.total += 1
            result.failed += 1
            result.errors.append({"global_id": current_id, "error": f"Exception: {e}"})
            result.aborted = f"Unexpected error: {e}"
            if not notified and callbacks.on_batch_complete:
                try:
                    callbacks.on_batch_complete(result)
                except Exception:
                    logger.exception("on_batch_complete callback failed")

        finally:
            self._running = False
            self._stop_requested = False

        log_batch_complete(logger, result)
        return result
