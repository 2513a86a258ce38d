"""
Monitoring Layer - Metrics registry and scrape endpoint.

This module provides:
    - MetricsSink: failed/successful/total gauges keyed by (ip, cluster)
    - create_app: Flask app serving /metrics and /health
    - MetricsServer: Runs the app in a background thread

Exported metric families:
    - elasticsearch_node_connectivity_failed{ip, cluster}
    - elasticsearch_node_connectivity_successful{ip, cluster}
    - elasticsearch_node_connectivity_total{ip, cluster}
    - elasticsearch_exporter_errors_total{kind}
"""

from .metrics import (
    ERROR_CONFIG_PARSE,
    ERROR_DIRECTORY_READ,
    ERROR_KINDS,
    ERROR_PROBE_DECODE,
    ERROR_PROBE_TRANSPORT,
    MetricsSink,
)
from .server import HEALTH_PATH, MetricsServer, create_app

__all__ = [
    # Metrics
    "MetricsSink",
    "ERROR_KINDS",
    "ERROR_DIRECTORY_READ",
    "ERROR_CONFIG_PARSE",
    "ERROR_PROBE_TRANSPORT",
    "ERROR_PROBE_DECODE",
    # Endpoint
    "HEALTH_PATH",
    "MetricsServer",
    "create_app",
]
