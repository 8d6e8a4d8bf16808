"""Shared fakes and fixtures for fieldsync tests.

The fakes implement the transport and feature store contracts in memory so
the sync core can be exercised without a network or a real layer file.
"""

import asyncio
from types import MappingProxyType
from typing import Any

import pytest

from fieldsync.config import SyncConfig
from fieldsync.errors import LocalCommitError
from fieldsync.storage.base import Feature
from fieldsync.sync.context import SyncContext
from fieldsync.transport.webdav import local_filename

WEBDAV_URL = "https://dav.example.com/photos"
API_URL = "https://sync.example.com"


class FakeUploader:
    """In-memory WebDAV store."""

    def __init__(self, base_url: str = WEBDAV_URL) -> None:
        self.base_url = base_url
        self.objects: set[str] = set()
        self.put_errors: dict[str, Exception] = {}
        self.exists_error: Exception | None = None
        self.health_error: Exception | None = None
        self.health_delay = 0.0
        self.probed: list[str] = []
        self.puts: list[tuple[str, str]] = []

    def remote_url_for(self, local_path: str, global_id: str) -> str:
        return f"{self.base_url}/{local_filename(local_path)}"

    async def exists(self, remote_url: str) -> bool:
        self.probed.append(remote_url)
        if self.exists_error:
            raise self.exists_error
        return remote_url in self.objects

    async def put(self, local_path: str, remote_url: str) -> None:
        self.puts.append((local_path, remote_url))
        error = self.put_errors.get(local_path)
        if error:
            raise error
        self.objects.add(remote_url)

    async def health_check(self) -> None:
        await asyncio.sleep(self.health_delay)
        if self.health_error:
            raise self.health_error


class FakeDatabase:
    """In-memory sync API.

    ``errors`` maps a global id to errors raised on successive calls before
    the update finally succeeds.
    """

    def __init__(self) -> None:
        self.errors: dict[str, list[Exception]] = {}
        self.records: dict[str, str] = {}
        self.calls: list[tuple[str, str, str, str]] = []
        self.health_error: Exception | None = None
        self.health_delay = 0.0

    async def update_record(self, global_id: str, url: str, table: str, field: str) -> dict[str, Any]:
        self.calls.append((global_id, url, table, field))
        pending = self.errors.get(global_id)
        if pending:
            raise pending.pop(0)
        self.records[global_id] = url
        return {"success": True, "global_id": global_id}

    async def health_check(self) -> None:
        await asyncio.sleep(self.health_delay)
        if self.health_error:
            raise self.health_error


class MemoryFeatureStore:
    """Feature store holding attribute dicts in memory."""

    def __init__(self, rows: list[dict[str, Any]], fields: list[str] | None = None) -> None:
        self.rows = [dict(row) for row in rows]
        self._fields = fields
        self.commit_error: Exception | None = None
        self.set_error: Exception | None = None
        self.open_session = False
        self.commits = 0
        self.rollbacks = 0
        self._pending: dict[int, dict[str, Any]] = {}

    def features(self) -> list[Feature]:
        return [Feature(fid=i, attributes=MappingProxyType(dict(row))) for i, row in enumerate(self.rows)]

    def field_names(self) -> list[str]:
        if self._fields is not None:
            return self._fields
        names: dict[str, None] = {}
        for row in self.rows:
            for name in row:
                names.setdefault(name, None)
        return list(names)

    def begin_edit(self) -> None:
        if self.open_session:
            raise LocalCommitError("Edit session already open")
        self.open_session = True
        self._pending = {}

    def set_attribute(self, feature_ref: Any, field: str, value: Any) -> None:
        if self.set_error:
            raise self.set_error
        self._pending.setdefault(feature_ref.fid, {})[field] = value

    def commit_edit(self) -> None:
        if self.commit_error:
            raise self.commit_error
        for fid, changes in self._pending.items():
            self.rows[fid].update(changes)
        self.commits += 1
        self.open_session = False

    def rollback_edit(self) -> None:
        self._pending = {}
        self.rollbacks += 1
        self.open_session = False


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_config(**overrides: Any) -> SyncConfig:
    values = {
        "webdav_url": WEBDAV_URL,
        "webdav_username": "surveyor",
        "webdav_password": "secret",
        "api_url": API_URL,
        "api_token": "token-123",
        "db_table": "design.verify_poles",
        "photo_field": "photo",
        "max_retries": 3,
        "retry_base_delay": 2.0,
    }
    values.update(overrides)
    return SyncConfig(**values)


@pytest.fixture
def config() -> SyncConfig:
    return make_config()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> MemoryFeatureStore:
    return MemoryFeatureStore([
        {"global_id": "pole-1", "photo": "/home/surveyor/DCIM/pole1.jpg"},
        {"global_id": "pole-2", "photo": "C:\\Users\\surveyor\\pole2.jpg"},
        {"global_id": "pole-3", "photo": "https://dav.example.com/photos/pole3.jpg"},
        {"global_id": "pole-4", "photo": ""},
        {"global_id": "pole-5", "photo": "/home/surveyor/DCIM/pole5.jpg"},
    ])


@pytest.fixture
def context(config, uploader, database, store, sleep) -> SyncContext:
    return SyncContext(config=config, database=database, store=store, uploader=uploader, sleep=sleep)
