"""Tests for the sequential batch coordinator."""

import asyncio

import pytest

from fieldsync.config import SyncMode
from fieldsync.errors import AuthError, NetworkError
from fieldsync.sync.batch import BatchCallbacks, BatchCoordinator
from fieldsync.sync.classifier import classify
from fieldsync.sync.models import BatchResult
from fieldsync.sync.orchestrator import PhotoSyncOrchestrator

from conftest import MemoryFeatureStore

pytestmark = pytest.mark.asyncio


@pytest.fixture
def three_poles():
    return MemoryFeatureStore([
        {"global_id": "pole-1", "photo": "/data/pole1.jpg"},
        {"global_id": "pole-2", "photo": "/data/pole2.jpg"},
        {"global_id": "pole-3", "photo": "/data/pole3.jpg"},
    ])


@pytest.fixture
def coordinator(context, three_poles):
    context.store = three_poles
    return BatchCoordinator(PhotoSyncOrchestrator(context))


def assert_invariants(result: BatchResult) -> None:
    assert result.succeeded + result.failed == result.total
    assert len(result.errors) == result.failed


class TestBatchOutcomes:
    """Tests for aggregation across items."""

    async def test_failed_upload_does_not_stop_batch(self, coordinator, uploader, database, three_poles):
        """Item 2 fails to upload; items 1 and 3 still sync."""
        uploader.put_errors["/data/pole2.jpg"] = NetworkError("Network error during upload")
        items = classify(three_poles.features(), "photo")

        result = await coordinator.run_batch(items)

        assert result.total == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.errors == [{"global_id": "pole-2", "error": "Network error during upload"}]
        assert result.aborted is None
        assert set(database.records) == {"pole-1", "pole-3"}
        assert three_poles.rows[2]["photo"].startswith("https://")
        assert_invariants(result)

    async def test_errors_keep_failure_order(self, coordinator, database, three_poles):
        database.errors["pole-3"] = [AuthError("Authentication failed - check API token")]
        database.errors["pole-1"] = [NetworkError("Network error - cannot reach API")]
        items = classify(three_poles.features(), "photo")

        result = await coordinator.run_batch(items)

        assert [entry["global_id"] for entry in result.errors] == ["pole-1", "pole-3"]
        assert_invariants(result)

    async def test_empty_batch(self, coordinator):
        """No items: zeroed result, only the batch-complete callback fires."""
        progress, completed, finished = [], [], []
        callbacks = BatchCallbacks(
            on_item_progress=lambda *args: progress.append(args),
            on_item_complete=lambda *args: completed.append(args),
            on_batch_complete=finished.append,
        )

        result = await coordinator.run_batch([], callbacks)

        assert result.to_dict() == {"total": 0, "succeeded": 0, "failed": 0, "errors": [], "aborted": None}
        assert progress == []
        assert completed == []
        assert finished == [result]


class TestSequencing:
    """Tests for ordering and callbacks."""

    async def test_items_run_one_at_a_time_in_order(self, coordinator, database, three_poles):
        """No item starts before the previous one has finished its pipeline."""
        in_flight = 0
        max_in_flight = 0
        order = []
        original = database.update_record

        async def tracked(global_id, *args):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            order.append(global_id)
            await asyncio.sleep(0)
            in_flight -= 1
            return await original(global_id, *args)

        database.update_record = tracked

        await coordinator.run_batch(classify(three_poles.features(), "photo"))

        assert order == ["pole-1", "pole-2", "pole-3"]
        assert max_in_flight == 1

    async def test_callbacks(self, coordinator, uploader, three_poles):
        """Each item reports 0% before dispatch and a completion afterwards."""
        uploader.put_errors["/data/pole2.jpg"] = NetworkError("Network error during upload")
        progress, completed, finished = [], [], []
        callbacks = BatchCallbacks(
            on_item_progress=lambda *args: progress.append(args),
            on_item_complete=lambda *args: completed.append(args),
            on_batch_complete=finished.append,
        )

        result = await coordinator.run_batch(classify(three_poles.features(), "photo"), callbacks)

        assert progress[0] == (0, 3, 0, "Syncing photo 1 of 3")
        assert all(total == 3 for _, total, _, _ in progress)
        assert [index for index, *_ in progress] == sorted(index for index, *_ in progress)
        assert completed == [
            (0, True, None),
            (1, False, "Network error during upload"),
            (2, True, None),
        ]
        assert finished == [result]


class TestFaultBoundary:
    """Tests for faults inside the batch loop itself."""

    async def test_raising_callback_ends_batch_with_partial_result(self, coordinator, three_poles):
        """A fault becomes one synthetic failure; run_batch does not raise."""
        finished = []

        def on_item_complete(index, success, error):
            if index == 1:
                raise RuntimeError("progress widget gone")

        callbacks = BatchCallbacks(on_item_complete=on_item_complete, on_batch_complete=finished.append)

        result = await coordinator.run_batch(classify(three_poles.features(), "photo"), callbacks)

        assert result.succeeded == 2
        assert result.failed == 1
        assert result.total == 3
        assert result.errors[-1]["error"] == "Exception: progress widget gone"
        assert "progress widget gone" in result.aborted
        assert finished == [result]
        assert_invariants(result)
        assert coordinator.running is False

    async def test_raising_batch_complete_callback(self, coordinator, three_poles):
        def explode(result):
            raise RuntimeError("listener failed")

        result = await coordinator.run_batch(
            classify(three_poles.features(), "photo"), BatchCallbacks(on_batch_complete=explode)
        )

        assert result.succeeded == 3
        assert result.errors == [{"global_id": None, "error": "Exception: listener failed"}]
        assert_invariants(result)


class TestStopAndSingleFlight:
    """Tests for the stop flag and concurrent runs."""

    async def test_stop_between_items(self, coordinator, three_poles):
        def on_item_complete(index, success, error):
            if index == 0:
                coordinator.request_stop()

        result = await coordinator.run_batch(
            classify(three_poles.features(), "photo"), BatchCallbacks(on_item_complete=on_item_complete)
        )

        assert result.total == 1
        assert result.succeeded == 1
        assert result.aborted == "Stopped after 1 of 3 photo(s)"
        assert three_poles.rows[1]["photo"] == "/data/pole2.jpg"
        assert_invariants(result)

    async def test_concurrent_run_rejected(self, coordinator, database, three_poles):
        """A second batch on the same coordinator is refused without raising."""
        release = asyncio.Event()
        original = database.update_record

        async def gated(*args):
            await release.wait()
            return await original(*args)

        database.update_record = gated
        items = classify(three_poles.features(), "photo")

        first = asyncio.create_task(coordinator.run_batch(items))
        await asyncio.sleep(0.01)
        second = await coordinator.run_batch(items)
        release.set()
        first_result = await first

        assert second.total == 0
        assert second.aborted == "Another batch is already running"
        assert first_result.succeeded == 3

    async def test_db_only_batch(self, context, database):
        """In db-only mode remote URLs are confirmed without uploading."""
        store = MemoryFeatureStore([
            {"global_id": "a", "photo": "https://dav.example.com/photos/a.jpg"},
            {"global_id": "b", "photo": "https://dav.example.com/photos/b.jpg"},
        ])
        context.store = store
        context.uploader = None
        coordinator = BatchCoordinator(PhotoSyncOrchestrator(context))

        result = await coordinator.run_batch(classify(store.features(), "photo", SyncMode.DB_ONLY))

        assert result.succeeded == 2
        assert database.records == {
            "a": "https://dav.example.com/photos/a.jpg",
            "b": "https://dav.example.com/photos/b.jpg",
        }
        assert store.commits == 0
