"""Per-photo sync pipeline: upload -> database confirmation -> local commit.

Each step is a coroutine ``(item, url, context) -> StepOutcome`` that never
raises; the orchestrator drives the planned steps in order and stops at the
first Failure. Nothing is rolled back: a photo uploaded before a failed
database update stays on the store, and the next run reuses it through the
existence probe.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from fieldsync.errors import ErrorKind, RequestTimeoutError, SyncError
from fieldsync.logging import log_item_failed, log_item_synced, log_retry_scheduled
from fieldsync.storage.base import FeatureStore, edit_session, wrap_store_error
from fieldsync.sync.context import SyncContext
from fieldsync.sync.models import Failure, ItemResult, StepOutcome, Success, SyncStage, WorkItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, str], None]
Step = Callable[[WorkItem, str | None, SyncContext], Awaitable[StepOutcome]]

# Share of item progress per stage
STAGE_WEIGHTS = {
    SyncStage.UPLOADING: 80,
    SyncStage.CONFIRMING: 15,
    SyncStage.COMMITTING: 5,
}

STAGE_STATUS = {
    SyncStage.UPLOADING: ("Uploading photo...", "Upload complete"),
    SyncStage.CONFIRMING: ("Updating database...", "Database updated"),
    SyncStage.COMMITTING: ("Saving URL to layer...", "Layer updated"),
}


async def with_ceiling(awaitable: Awaitable[T], timeout: float, message: str) -> T:
    """Await with a hard time limit, failing with RequestTimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise RequestTimeoutError(message) from e


async def upload_step(item: WorkItem, url: str | None, context: SyncContext) -> StepOutcome:
    """Put the local photo on the WebDAV store, reusing an existing object."""
    uploader = context.uploader
    if uploader is None:
        return Failure(ErrorKind.VALIDATION, "Photo has a local path but no WebDAV store is configured")

    config = context.config
    try:
        remote_url = uploader.remote_url_for(item.source_path, item.global_id)

        try:
            exists = await with_ceiling(
                uploader.exists(remote_url), config.health_timeout, "Existence check timeout"
            )
        except SyncError as e:
            # A failed probe falls through to the PUT
            logger.warning(
                "Existence check failed for %s: %s", remote_url, e.message,
                extra={"global_id": item.global_id, "error_kind": e.kind.value},
            )
            exists = False

        if exists:
            logger.info(
                "Photo already on store, skipping upload: %s", remote_url,
                extra={"global_id": item.global_id},
            )
            return Success(remote_url)

        await with_ceiling(
            uploader.put(item.source_path, remote_url), config.upload_timeout, "Upload timeout"
        )
    except SyncError as e:
        return Failure.from_error(e)
    except Exception as e:
        logger.exception("Unexpected upload error for %s", item.global_id)
        return Failure(ErrorKind.OTHER, f"Upload failed: {e}")

    return Success(remote_url)


async def confirm_step(item: WorkItem, url: str | None, context: SyncContext) -> StepOutcome:
    """Record the URL in the database, retrying timeouts with linear backoff.

    Up to ``max_retries`` attempts are made; the delay before attempt n+1 is
    ``retry_base_delay * n``. Any failure other than a timeout ends the step
    immediately.
    """
    config = context.config
    attempt = 0
    while True:
        attempt += 1
        try:
            await with_ceiling(
                context.database.update_record(item.global_id, url, config.db_table, config.photo_field),
                config.api_timeout,
                "API request timeout",
            )
            return Success(url)
        except SyncError as e:
            failure = Failure.from_error(e)
        except Exception as e:
            logger.exception("Unexpected database update error for %s", item.global_id)
            failure = Failure(ErrorKind.OTHER, f"Database update failed: {e}")

        if failure.kind is not ErrorKind.TIMEOUT or attempt >= config.max_retries:
            return failure

        delay = config.retry_base_delay * attempt
        log_retry_scheduled(logger, item.global_id, attempt + 1, delay)
        await context.sleep(delay)


def _write_url(store: FeatureStore, feature_ref: object, field: str, url: str) -> None:
    with edit_session(store):
        store.set_attribute(feature_ref, field, url)


async def commit_step(item: WorkItem, url: str | None, context: SyncContext) -> StepOutcome:
    """Write the resolved URL into the local layer inside one edit session."""
    store = context.store
    if store is None:
        return Failure(ErrorKind.LOCAL_COMMIT, "No feature store available for local commit")
    try:
        await asyncio.to_thread(_write_url, store, item.feature_ref, context.config.photo_field, url)
    except Exception as e:
        return Failure.from_error(wrap_store_error("save photo URL to layer", e))
    return Success(url)


STEPS: dict[SyncStage, Step] = {
    SyncStage.UPLOADING: upload_step,
    SyncStage.CONFIRMING: confirm_step,
    SyncStage.COMMITTING: commit_step,
}


class _ProgressScale:
    """Maps per-stage progress onto 0-100 for the whole item."""

    def __init__(self, stages: list[SyncStage], callback: ProgressCallback | None) -> None:
        self._callback = callback
        total = sum(STAGE_WEIGHTS[stage] for stage in stages)
        self._bounds: dict[SyncStage, tuple[int, int]] = {}
        done = 0
        for stage in stages:
            start = round(100 * done / total)
            done += STAGE_WEIGHTS[stage]
            self._bounds[stage] = (start, round(100 * done / total))

    def report(self, stage: SyncStage, finished: bool) -> None:
        if self._callback is None:
            return
        start, end = self._bounds[stage]
        starting_text, finished_text = STAGE_STATUS[stage]
        if finished:
            self._callback(end, finished_text)
        else:
            self._callback(start, starting_text)


class PhotoSyncOrchestrator:
    """Drives one work item through its planned stages.

    Example:
        orchestrator = PhotoSyncOrchestrator(context)
        result = await orchestrator.sync_item(item, lambda pct, text: print(pct, text))
    """

    def __init__(self, context: SyncContext) -> None:
        self.context = context

    def plan(self, item: WorkItem) -> list[SyncStage]:
        """Stages an item goes through.

        Items that already carry a remote URL skip the upload, and their
        layer value needs no rewrite. The local commit is also skipped when
        the API owns the local copy (``commit_local`` disabled).
        """
        stages = []
        if item.needs_upload:
            stages.append(SyncStage.UPLOADING)
        stages.append(SyncStage.CONFIRMING)
        if item.needs_upload and self.context.config.commit_local:
            stages.append(SyncStage.COMMITTING)
        return stages

    async def sync_item(
        self, item: WorkItem, on_progress: ProgressCallback | None = None
    ) -> ItemResult:
        """Run the pipeline for one item and return its terminal result.

        Never raises for sync failures; they are returned as
        ``ItemResult(success=False)``. ``resolved_url`` is kept once known,
        even if a later step fails.
        """
        stages = self.plan(item)
        progress = _ProgressScale(stages, on_progress)
        started = time.monotonic()
        url = item.remote_url
        previous = SyncStage.START

        for stage in stages:
            logger.debug("%s: %s -> %s", item.global_id, previous.value, stage.value)
            previous = stage
            progress.report(stage, finished=False)
            outcome = await STEPS[stage](item, url, self.context)

            if isinstance(outcome, Failure):
                logger.debug("%s: %s -> %s", item.global_id, stage.value, SyncStage.DONE.value)
                log_item_failed(logger, item.global_id, stage.value, outcome.kind.value, outcome.reason)
                return ItemResult(
                    global_id=item.global_id,
                    success=False,
                    resolved_url=url,
                    error=outcome.reason,
                    error_kind=outcome.kind,
                )

            url = outcome.payload
            progress.report(stage, finished=True)

        logger.debug("%s: %s -> %s", item.global_id, previous.value, SyncStage.DONE.value)
        log_item_synced(logger, item.global_id, url, (time.monotonic() - started) * 1000)
        return ItemResult(global_id=item.global_id, success=True, resolved_url=url)
