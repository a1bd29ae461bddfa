"""HTTP endpoint exposing probe metrics and a health check.

``GET /metrics`` renders the registry in the Prometheus text format. The
probe collector performs blocking file I/O, so rendering runs in the
default executor rather than on the event loop. ``GET /healthz`` always
answers 200 and never runs a probe.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from dioprobe.utils.exceptions import ServerBindError
from dioprobe.utils.logging_config import get_logger
from dioprobe.utils.network import parse_listen_address

if TYPE_CHECKING:
    from aiohttp.web_request import Request
    from aiohttp.web_response import Response
    from prometheus_client.registry import CollectorRegistry

    from dioprobe.models import ProbeConfig

METRICS_PATH = "/metrics"
HEALTHZ_PATH = "/healthz"

logger = get_logger(__name__)

__all__ = ["HEALTHZ_PATH", "METRICS_PATH", "MetricsServer", "parse_listen_address"]


class MetricsServer:
    """aiohttp server for the ``/metrics`` and ``/healthz`` endpoints."""

    def __init__(self, config: ProbeConfig, registry: CollectorRegistry):
        """Initialize the server.

        Args:
            config: Probe configuration providing the listen address
            registry: Registry rendered on every ``/metrics`` request

        """
        self.host, self.port = parse_listen_address(config.listen)
        self.registry = registry

        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Register HTTP routes."""
        self.app.router.add_get(METRICS_PATH, self._handle_metrics)
        self.app.router.add_get(HEALTHZ_PATH, self._handle_healthz)

    async def _handle_metrics(self, _request: Request) -> Response:
        """Handle GET /metrics - run the probe and render all metrics."""
        loop = asyncio.get_running_loop()
        output = await loop.run_in_executor(None, generate_latest, self.registry)
        return web.Response(body=output, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def _handle_healthz(self, _request: Request) -> Response:
        """Handle GET /healthz - liveness only."""
        return web.Response(status=200)

    @property
    def addresses(self) -> list[Any]:
        """Socket addresses the server is bound to."""
        if self.runner is None:
            return []
        return list(self.runner.addresses)

    async def start(self) -> None:
        """Start the HTTP server.

        Raises:
            ServerBindError: If the listen address cannot be bound.

        """
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        try:
            await self.site.start()
        except OSError as e:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            msg = f"Cannot listen on {self.host or '*'}:{self.port}: {e.strerror or e}"
            raise ServerBindError(
                msg,
                details={"host": self.host, "port": self.port, "errno": e.errno},
            ) from e

        logger.info(
            "Serving metrics on http://%s:%d%s",
            self.host or "*",
            self.port,
            METRICS_PATH,
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        self.site = None
        self.runner = None
        logger.info("HTTP server stopped")

    async def serve_forever(self) -> None:
        """Start the server and block until the task is cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
