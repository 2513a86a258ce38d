"""
Monitoring layer test fixtures.

Every test gets its own CollectorRegistry so gauges never leak between
tests or into the process-wide default registry.
"""
import pytest
from prometheus_client import CollectorRegistry

from es_exporter.monitoring.metrics import MetricsSink
from es_exporter.monitoring.server import create_app
from es_exporter.probing.models import ProbeOutcome, ProbeResult


@pytest.fixture
def registry():
    """Fresh metrics registry."""
    return CollectorRegistry()


@pytest.fixture
def sink(registry):
    """MetricsSink bound to the test registry."""
    return MetricsSink(registry=registry)


@pytest.fixture
def healthy_result():
    """Probe result of a node reaching all 3 cluster nodes."""
    return ProbeResult(total=3, successful=3, failed=0)


@pytest.fixture
def unreachable_result():
    """Probe result of a node that could not be reached."""
    return ProbeResult(failed=1, outcome=ProbeOutcome.TRANSPORT_ERROR)


@pytest.fixture
def app(sink):
    """Flask test app."""
    return create_app(
        sink,
        status_provider=lambda: {"scheduler": {"cycles_run": 4}},
        testing=True,
    )


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
