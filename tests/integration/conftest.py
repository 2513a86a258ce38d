"""
Integration test fixtures.

These fixtures wire the real loader, scanner, probe and sink together.
Elasticsearch nodes are simulated with local aiohttp servers; addresses from
cluster files are routed to them so tests can use realistic node IPs.
"""

import json
import socket

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from prometheus_client import CollectorRegistry

from es_exporter.monitoring import MetricsSink, create_app
from es_exporter.probing import NodeProbe


class RoutingProbe:
    """
    NodeProbe that sends each configured address to a local stand-in.

    Cluster files keep their production-looking addresses (and metric
    labels); only the TCP destination changes.
    """

    def __init__(self, inner, routes):
        self._inner = inner
        self.routes = routes

    async def probe(self, address, timeout=None):
        return await self._inner.probe(self.routes[str(address)], timeout=timeout)


async def start_stats_server(body):
    """Serve a fixed /_cluster/stats body on a local port."""

    async def handle(request):
        return web.json_response(body)

    app = web.Application()
    app.router.add_get("/_cluster/stats", handle)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.fixture
def refused_address():
    """Address of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"127.0.0.1:{port}"


@pytest_asyncio.fixture
async def healthy_node():
    """Node reporting failed=0, successful=3, total=3."""
    server = await start_stats_server({
        "_nodes": {"total": 3, "successful": 3, "failed": 0},
        "cluster_name": "c1",
    })
    yield f"{server.host}:{server.port}"
    await server.close()


@pytest_asyncio.fixture
async def node_probe():
    async with NodeProbe(timeout=1.0) as probe:
        yield probe


@pytest.fixture
def routed_probe(node_probe):
    """Factory for a RoutingProbe over the shared NodeProbe."""

    def _make(routes):
        return RoutingProbe(node_probe, routes)

    return _make


@pytest.fixture
def sink():
    return MetricsSink(registry=CollectorRegistry())


@pytest.fixture
def scrape(sink):
    """Return the /metrics body as served to Prometheus."""
    client = create_app(sink, testing=True).test_client()

    def _scrape():
        response = client.get("/metrics")
        assert response.status_code == 200
        return response.get_data(as_text=True)

    return _scrape


@pytest.fixture
def cluster_dir(tmp_path):
    directory = tmp_path / "clusters"
    directory.mkdir()
    return directory


@pytest.fixture
def write_cluster(cluster_dir):
    def _write(filename, document):
        path = cluster_dir / filename
        path.write_text(document if isinstance(document, str) else json.dumps(document))
        return path

    return _write
