"""
Core layer test fixtures.

The scheduler is exercised against a real temporary directory and a fake
probe, so cycles run without any network access.
"""
import asyncio
import json

import pytest
from prometheus_client import CollectorRegistry

from es_exporter.core.scheduler import PollingScheduler, SchedulerConfig
from es_exporter.monitoring.metrics import MetricsSink
from es_exporter.probing.models import ProbeOutcome, ProbeResult


class FakeProbe:
    """
    Stand-in for NodeProbe.

    Returns a canned result per host (healthy by default). When a gate is
    set, every probe waits on it, which keeps the probe "in flight".
    """

    def __init__(self):
        self.results = {}
        self.calls = []
        self.gate = None
        self.active = 0
        self.max_active = 0

    async def probe(self, address, timeout=None):
        self.calls.append(address)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            result = self.results.get(address.host)
            if isinstance(result, Exception):
                raise result
            return result or ProbeResult(total=3, successful=3, failed=0)
        finally:
            self.active -= 1


@pytest.fixture
def fake_probe():
    return FakeProbe()


@pytest.fixture
def unreachable():
    return ProbeResult(failed=1, outcome=ProbeOutcome.TRANSPORT_ERROR)


@pytest.fixture
def sink():
    """MetricsSink on a private registry."""
    return MetricsSink(registry=CollectorRegistry())


@pytest.fixture
def cluster_dir(tmp_path):
    directory = tmp_path / "clusters"
    directory.mkdir()
    return directory


@pytest.fixture
def write_cluster(cluster_dir):
    """Write a cluster file; dicts are JSON-encoded, strings written as-is."""

    def _write(filename, document):
        path = cluster_dir / filename
        path.write_text(document if isinstance(document, str) else json.dumps(document))
        return path

    return _write


@pytest.fixture
def make_scheduler(cluster_dir, fake_probe, sink):
    """Factory for schedulers over cluster_dir with config overrides."""

    def _make(**overrides):
        config = SchedulerConfig(target_folder=cluster_dir, **overrides)
        return PollingScheduler(config=config, probe=fake_probe, sink=sink)

    return _make
