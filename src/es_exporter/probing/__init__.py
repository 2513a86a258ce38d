"""
Probing Layer - Per-node cluster stats requests.

This module provides:
    - NodeProbe: One bounded-timeout GET to http://<host:port>/_cluster/stats
    - ProbeResult: Reported total/successful/failed counts
    - ProbeOutcome: OK, TRANSPORT_ERROR or DECODE_ERROR

Failure Handling:
    - Transport errors are reported as failed=1 (no retry)
    - Undecodable responses are reported as zeros and logged
"""

from .client import (
    CLUSTER_STATS_PATH,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_BODY_BYTES,
    NodeProbe,
    ProbeDecodeError,
    ProbeError,
    ProbeTransportError,
)
from .models import ProbeOutcome, ProbeResult

__all__ = [
    "CLUSTER_STATS_PATH",
    "DEFAULT_TIMEOUT_SECONDS",
    "MAX_BODY_BYTES",
    "NodeProbe",
    "ProbeDecodeError",
    "ProbeError",
    "ProbeOutcome",
    "ProbeResult",
    "ProbeTransportError",
]
