"""
Probing layer test fixtures.

IMPORTANT: No test talks to a real Elasticsearch node. Nodes are simulated
with a local aiohttp server whose /_cluster/stats handler is swapped per test.
"""
import asyncio
import socket

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from es_exporter.probing.client import NodeProbe


# =============================================================================
# Response Fixtures
# =============================================================================

@pytest.fixture
def cluster_stats_response():
    """Typical /_cluster/stats body (trimmed)."""
    return {
        "_nodes": {"total": 9, "successful": 8, "failed": 1},
        "cluster_name": "logs-prod",
        "status": "green",
        "indices": {"count": 42},
    }


# =============================================================================
# Simulated Node
# =============================================================================

class FakeNode:
    """Local HTTP server standing in for an Elasticsearch node."""

    def __init__(self):
        self.body = b"{}"
        self.status = 200
        self.delay = 0.0
        self.requests = []
        self._server = None

    async def _handle(self, request):
        self.requests.append(request.path)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(body=self.body, status=self.status, content_type="application/json")

    async def start(self):
        app = web.Application()
        app.router.add_get("/_cluster/stats", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()

    async def close(self):
        if self._server is not None:
            await self._server.close()

    @property
    def address(self):
        return f"{self._server.host}:{self._server.port}"


@pytest_asyncio.fixture
async def fake_node():
    """Running FakeNode, closed after the test."""
    node = FakeNode()
    await node.start()
    yield node
    await node.close()


@pytest.fixture
def refused_address():
    """Address of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"127.0.0.1:{port}"


@pytest_asyncio.fixture
async def probe():
    """NodeProbe with a short timeout, owning its session."""
    async with NodeProbe(timeout=0.5) as node_probe:
        yield node_probe
