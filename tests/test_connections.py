"""Tests for the concurrent WebDAV + API connection test."""

import asyncio

import pytest

from fieldsync.errors import AuthError, NetworkError
from fieldsync.sync.connections import test_connections as run_connection_test

from conftest import make_config

pytestmark = pytest.mark.asyncio


class TestConnections:
    """Tests for test_connections."""

    async def test_both_ok(self, context):
        report = await run_connection_test(context)

        assert report.to_dict() == {
            "webdav": {"success": True, "error": None},
            "api": {"success": True, "error": None},
        }

    async def test_callback_fires_once_after_slower_probe(self, context, uploader, database):
        """One probe answers instantly, the other later; the callback fires once, at the end."""
        database.health_delay = 0.05
        finished_at = []

        def on_complete(report):
            finished_at.append(report)

        report = await run_connection_test(context, on_complete)

        assert finished_at == [report]
        assert report.webdav.success is True
        assert report.api.success is True

    async def test_probes_run_concurrently(self, context, uploader, database):
        """Total time is the slower probe, not the sum."""
        uploader.health_delay = 0.2
        database.health_delay = 0.2
        loop = asyncio.get_running_loop()

        started = loop.time()
        await run_connection_test(context)

        assert loop.time() - started < 0.35

    async def test_failures_reported_per_endpoint(self, context, uploader, database):
        uploader.health_error = AuthError("Authentication failed - check username/password")
        database.health_error = NetworkError("Network error - cannot reach API")
        calls = []

        report = await run_connection_test(context, calls.append)

        assert report.webdav.error == "Authentication failed - check username/password"
        assert report.api.error == "Network error - cannot reach API"
        assert len(calls) == 1

    async def test_probe_ceiling(self, context, database):
        context.config = make_config(health_timeout=0.01)
        database.health_delay = 5

        report = await run_connection_test(context)

        assert report.api.success is False
        assert report.api.error == "Connection timeout"

    async def test_unconfigured_webdav(self, context):
        context.uploader = None

        report = await run_connection_test(context)

        assert report.webdav.success is False
        assert report.webdav.error == "WebDAV not configured"
        assert report.api.success is True
