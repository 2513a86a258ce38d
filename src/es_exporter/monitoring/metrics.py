"""
Metrics sink for node connectivity.

Holds the three labeled gauge families scraped by Prometheus, plus an error
counter so that skipped directories, bad config files and failed probes are
visible without reading the logs.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest
from prometheus_client import REGISTRY

from es_exporter.probing.models import ProbeOutcome

if TYPE_CHECKING:
    from es_exporter.probing.models import ProbeResult

logger = logging.getLogger(__name__)

LABEL_NAMES = ("ip", "cluster")

FAILED_METRIC = "elasticsearch_node_connectivity_failed"
SUCCESSFUL_METRIC = "elasticsearch_node_connectivity_successful"
TOTAL_METRIC = "elasticsearch_node_connectivity_total"
ERRORS_METRIC = "elasticsearch_exporter_errors"

# Error kinds for the errors counter
ERROR_DIRECTORY_READ = "directory_read"
ERROR_CONFIG_PARSE = "config_parse"
ERROR_PROBE_TRANSPORT = "probe_transport"
ERROR_PROBE_DECODE = "probe_decode"

ERROR_KINDS = (
    ERROR_DIRECTORY_READ,
    ERROR_CONFIG_PARSE,
    ERROR_PROBE_TRANSPORT,
    ERROR_PROBE_DECODE,
)

_OUTCOME_ERRORS = {
    ProbeOutcome.TRANSPORT_ERROR: ERROR_PROBE_TRANSPORT,
    ProbeOutcome.DECODE_ERROR: ERROR_PROBE_DECODE,
}


class MetricsSink:
    """
    Labeled gauge registry for per-node connectivity.

    Every record() call overwrites the failed/successful/total gauges for
    its (ip, cluster) pair. Nothing is read back before writing, so
    concurrent writers need no locking beyond what prometheus_client does
    internally. Label pairs are never removed: a node dropped from config
    keeps exporting its last value until the process restarts.

    Usage:
        sink = MetricsSink()
        sink.record("10.0.0.1", "logs-prod", result)

        # Read back (tests, /health)
        sink.get("10.0.0.1", "logs-prod")
        # {"failed": 0.0, "successful": 3.0, "total": 3.0}
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """
        Initialize the sink.

        Args:
            registry: Registry to register the metrics on. The process-wide
                      default registry is used when not provided; tests pass
                      a fresh CollectorRegistry.
        """
        self._registry = registry if registry is not None else REGISTRY

        self._failed = Gauge(
            FAILED_METRIC,
            "Elastic Search Node Connectivity Failed",
            LABEL_NAMES,
            registry=self._registry,
        )
        self._successful = Gauge(
            SUCCESSFUL_METRIC,
            "Elastic Search Node Connectivity Successful",
            LABEL_NAMES,
            registry=self._registry,
        )
        self._total = Gauge(
            TOTAL_METRIC,
            "Elastic Search Node Connectivity Total",
            LABEL_NAMES,
            registry=self._registry,
        )
        self._errors = Counter(
            ERRORS_METRIC,
            "Errors seen while discovering and probing clusters",
            ("kind",),
            registry=self._registry,
        )

        # Export every error kind from the start, even at zero
        for kind in ERROR_KINDS:
            self._errors.labels(kind=kind)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record(self, host: str, cluster: str, result: "ProbeResult") -> None:
        """
        Overwrite the gauges for one node.

        Args:
            host: Node host (the "ip" label)
            cluster: Cluster name (the "cluster" label)
            result: Probe result to publish
        """
        labels = {"ip": host, "cluster": cluster}

        self._failed.labels(**labels).set(result.failed)
        self._successful.labels(**labels).set(result.successful)
        self._total.labels(**labels).set(result.total)

        kind = _OUTCOME_ERRORS.get(result.outcome)
        if kind is not None:
            self.record_error(kind)

    def record_error(self, kind: str) -> None:
        """Count one error of the given kind."""
        if kind not in ERROR_KINDS:
            raise ValueError(f"Unknown error kind: {kind}")
        self._errors.labels(kind=kind).inc()

    def get(self, host: str, cluster: str) -> Optional[Dict[str, float]]:
        """
        Read the current gauge values for one node.

        Returns:
            Dict with failed/successful/total, or None if never recorded
        """
        labels = {"ip": host, "cluster": cluster}
        failed = self._registry.get_sample_value(FAILED_METRIC, labels)
        if failed is None:
            return None

        return {
            "failed": failed,
            "successful": self._registry.get_sample_value(SUCCESSFUL_METRIC, labels),
            "total": self._registry.get_sample_value(TOTAL_METRIC, labels),
        }

    def error_count(self, kind: str) -> float:
        """Current value of the error counter for one kind."""
        value = self._registry.get_sample_value(f"{ERRORS_METRIC}_total", {"kind": kind})
        return value or 0.0

    def render(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self._registry)
