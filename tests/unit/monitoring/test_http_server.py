"""Tests for the aiohttp metrics endpoint."""

from __future__ import annotations

import asyncio
import socket
from pathlib import Path
from unittest.mock import MagicMock

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

pytestmark = [pytest.mark.unit, pytest.mark.monitoring]

from dioprobe.models import ProbeConfig
from dioprobe.monitoring.collector import METRIC_NAME, create_registry
from dioprobe.monitoring.http_server import HEALTHZ_PATH, METRICS_PATH, MetricsServer
from dioprobe.storage.probe import DirectIOProbe, MeasurementSample
from dioprobe.utils.exceptions import ServerBindError


@pytest.fixture
def stub_probe():
    """Probe double returning a fixed sample."""
    probe = MagicMock(spec=DirectIOProbe)
    probe.target = Path("/var/run")
    probe.measure_safely.return_value = (
        MeasurementSample(read_duration=0.001, write_duration=0.003),
        None,
    )
    return probe


@pytest.fixture
def metrics_server(stub_probe):
    """MetricsServer on an ephemeral loopback port."""
    config = ProbeConfig(listen="127.0.0.1:0")
    return MetricsServer(config, create_registry(stub_probe))


class TestRoutes:
    """Test request handling."""

    @pytest.mark.asyncio
    async def test_metrics_returns_both_samples(self, metrics_server, stub_probe):
        """GET /metrics answers 200 with the read and write gauges."""
        async with TestClient(TestServer(metrics_server.app)) as client:
            resp = await client.get(METRICS_PATH)
            body = await resp.text()

        assert resp.status == 200
        assert resp.headers["Content-Type"].startswith("text/plain")
        assert f'{METRIC_NAME}{{op="read"}} 0.001' in body
        assert f'{METRIC_NAME}{{op="write"}} 0.003' in body
        stub_probe.measure_safely.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_metrics_probes_on_every_request(self, metrics_server, stub_probe):
        """Each scrape runs its own measurement."""
        async with TestClient(TestServer(metrics_server.app)) as client:
            for _ in range(3):
                resp = await client.get(METRICS_PATH)
                assert resp.status == 200

        assert stub_probe.measure_safely.call_count == 3

    @pytest.mark.asyncio
    async def test_failed_probe_still_answers_200(self, metrics_server, stub_probe):
        """Probe failures show up as zero durations, not HTTP errors."""
        stub_probe.measure_safely.return_value = (
            MeasurementSample.zero(),
            OSError("disk gone"),
        )

        async with TestClient(TestServer(metrics_server.app)) as client:
            resp = await client.get(METRICS_PATH)
            body = await resp.text()

        assert resp.status == 200
        assert f'{METRIC_NAME}{{op="read"}} 0.0' in body
        assert f'{METRIC_NAME}{{op="write"}} 0.0' in body

    @pytest.mark.asyncio
    async def test_healthz_does_not_probe(self, metrics_server, stub_probe):
        """GET /healthz answers 200 without touching the disk."""
        async with TestClient(TestServer(metrics_server.app)) as client:
            resp = await client.get(HEALTHZ_PATH)

        assert resp.status == 200
        stub_probe.measure_safely.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_path(self, metrics_server):
        """Other paths are not served."""
        async with TestClient(TestServer(metrics_server.app)) as client:
            resp = await client.get("/")

        assert resp.status == 404


class TestLifecycle:
    """Test binding, serving and shutdown."""

    def test_listen_address_is_parsed(self, stub_probe):
        """Host and port come from the configured listen address."""
        server = MetricsServer(ProbeConfig(listen=":9172"), create_registry(stub_probe))

        assert server.host is None
        assert server.port == 9172
        assert server.addresses == []

    @pytest.mark.asyncio
    async def test_start_and_stop(self, metrics_server):
        """The server binds, answers real requests and releases its socket."""
        await metrics_server.start()
        try:
            host, port = metrics_server.addresses[0][:2]
            async with aiohttp.ClientSession() as session:
                async with session.get(f"http://{host}:{port}{HEALTHZ_PATH}") as resp:
                    assert resp.status == 200
        finally:
            await metrics_server.stop()

        assert metrics_server.addresses == []

    @pytest.mark.asyncio
    async def test_bind_failure(self, stub_probe):
        """An occupied port raises ServerBindError."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]
            server = MetricsServer(
                ProbeConfig(listen=f"127.0.0.1:{port}"),
                create_registry(stub_probe),
            )

            with pytest.raises(ServerBindError) as exc_info:
                await server.start()

        assert exc_info.value.details["port"] == port
        assert server.runner is None

    @pytest.mark.asyncio
    async def test_serve_forever_stops_on_cancel(self, metrics_server):
        """Cancelling serve_forever shuts the server down."""
        task = asyncio.create_task(metrics_server.serve_forever())
        for _ in range(100):
            if metrics_server.addresses:
                break
            await asyncio.sleep(0.01)
        assert metrics_server.addresses

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert metrics_server.addresses == []
