"""
Core Layer - The polling loop.

This module provides:
    - PollingScheduler: Periodic scan -> load -> probe -> record
    - SchedulerConfig: Interval, concurrency cap and overlap policy
    - SchedulerState: IDLE / SCANNING
    - OverlapPolicy: ALLOW or SKIP ticks while earlier probes are running
    - SchedulerStats: Lifetime counters
"""

from .scheduler import (
    OverlapPolicy,
    PollingScheduler,
    SchedulerConfig,
    SchedulerState,
    SchedulerStats,
)

__all__ = [
    "OverlapPolicy",
    "PollingScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "SchedulerStats",
]
