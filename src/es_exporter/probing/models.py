"""
Data models for node probing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProbeOutcome(str, Enum):
    """How a probe ended."""
    OK = "ok"
    TRANSPORT_ERROR = "transport_error"
    DECODE_ERROR = "decode_error"


@dataclass(frozen=True)
class ProbeResult:
    """
    Node connectivity as reported by one probe.

    On success the counts are the "_nodes" section of the node's own
    /_cluster/stats response, passed through unchanged. They describe how
    many nodes the cluster reached when answering, not anything counted by
    the exporter.

    A transport failure is reported as failed=1 with zero total/successful.
    An undecodable response is reported as all zeros.
    """
    total: int = 0
    successful: int = 0
    failed: int = 0
    outcome: ProbeOutcome = ProbeOutcome.OK

    @classmethod
    def transport_failure(cls) -> "ProbeResult":
        return cls(failed=1, outcome=ProbeOutcome.TRANSPORT_ERROR)

    @classmethod
    def decode_failure(cls) -> "ProbeResult":
        return cls(outcome=ProbeOutcome.DECODE_ERROR)

    @property
    def ok(self) -> bool:
        return self.outcome is ProbeOutcome.OK
