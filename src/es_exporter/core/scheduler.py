"""
PollingScheduler - Periodic scan / load / probe / record loop.

Every tick:
- Lists the watched directory
- Loads each cluster file in its own task
- Probes each node of each cluster in its own task
- Writes every result to the MetricsSink

A cycle ends as soon as its work is launched. Probes from one cycle may still
be running when the next tick fires; OverlapPolicy decides whether that tick
runs anyway or is dropped. A node whose probe from an earlier cycle is still
queued or running is not queued again, so the backlog never exceeds one probe
per (node, cluster) pair.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Coroutine, Dict, Optional, Set, Tuple, Union

from es_exporter.discovery import (
    ConfigLoader,
    ConfigParseError,
    DirectoryReadError,
    DirectoryScanner,
    FileEntry,
    NodeAddress,
)
from es_exporter.monitoring.metrics import ERROR_CONFIG_PARSE, ERROR_DIRECTORY_READ

if TYPE_CHECKING:
    from es_exporter.monitoring.metrics import MetricsSink
    from es_exporter.probing.client import NodeProbe
    from es_exporter.probing.models import ProbeResult

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Scheduler states."""

    IDLE = "idle"
    SCANNING = "scanning"


class OverlapPolicy(str, Enum):
    """What to do when a tick fires while earlier probes are still running."""

    ALLOW = "allow"  # Start the new cycle anyway
    SKIP = "skip"  # Drop the tick


@dataclass
class SchedulerConfig:
    """Configuration for the polling scheduler."""

    target_folder: Union[str, Path]
    interval_seconds: float = 15.0
    # Concurrent probes across all cycles; 0 means unbounded
    max_concurrency: int = 64
    overlap_policy: OverlapPolicy = OverlapPolicy.ALLOW


@dataclass
class SchedulerStats:
    """Counters for the scheduler's lifetime."""

    cycles_run: int = 0
    cycles_skipped: int = 0
    cycles_failed: int = 0
    files_seen: int = 0
    files_failed: int = 0
    nodes_skipped: int = 0
    probes_coalesced: int = 0
    probes_launched: int = 0
    last_cycle_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "cycles_run": self.cycles_run,
            "cycles_skipped": self.cycles_skipped,
            "cycles_failed": self.cycles_failed,
            "files_seen": self.files_seen,
            "files_failed": self.files_failed,
            "nodes_skipped": self.nodes_skipped,
            "probes_coalesced": self.probes_coalesced,
            "probes_launched": self.probes_launched,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
        }


class PollingScheduler:
    """
    Drives the polling cycle on a fixed interval.

    Partial failures are isolated: an unreadable directory skips the cycle,
    a bad file skips that cluster, a bad address skips that node, and an
    unreachable node is recorded as failed. None of them stop the loop.

    Usage:
        async with NodeProbe(timeout=2.0) as probe:
            scheduler = PollingScheduler(
                config=SchedulerConfig(target_folder="/etc/es-exporter/clusters"),
                probe=probe,
                sink=MetricsSink(),
            )
            await scheduler.start()
            # ... exporter runs ...
            await scheduler.stop()
    """

    def __init__(
        self,
        config: SchedulerConfig,
        probe: "NodeProbe",
        sink: "MetricsSink",
        scanner: Optional[DirectoryScanner] = None,
        loader: Optional[ConfigLoader] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            config: Scheduler configuration
            probe: NodeProbe used for every node
            sink: MetricsSink receiving every result
            scanner: Directory scanner (default DirectoryScanner())
            loader: Config loader (default ConfigLoader())
        """
        self._config = config
        self._probe = probe
        self._sink = sink
        self._scanner = scanner or DirectoryScanner()
        self._loader = loader or ConfigLoader()

        self._state = SchedulerState.IDLE
        self._stats = SchedulerStats()
        self._running = False
        self._stop_event = asyncio.Event()
        self._timer_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        # (node, cluster) pairs with a probe queued or running
        self._pending: Set[Tuple[str, str]] = set()
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(config.max_concurrency)
            if config.max_concurrency > 0
            else None
        )

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        """Whether the timer loop is running."""
        return self._running

    @property
    def inflight_count(self) -> int:
        """Load and probe tasks not yet finished."""
        return len(self._inflight)

    async def start(self) -> None:
        """Start the timer loop."""
        if self._running:
            logger.warning("PollingScheduler already running")
            return

        self._running = True
        self._stop_event.clear()
        self._timer_task = asyncio.create_task(self._timer_loop(), name="polling_timer")
        logger.info(
            f"Started polling of {self._config.target_folder} "
            f"(interval={self._config.interval_seconds}s, "
            f"overlap={self._config.overlap_policy.value}, "
            f"max_concurrency={self._config.max_concurrency or 'unbounded'})"
        )

    async def stop(self) -> None:
        """Stop the timer loop and cancel in-flight work."""
        if not self._running:
            return

        logger.info("Stopping polling...")
        self._running = False
        self._stop_event.set()

        tasks = list(self._inflight)
        if self._timer_task is not None:
            tasks.append(self._timer_task)

        for task in tasks:
            if not task.done():
                task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._timer_task = None
        self._inflight.clear()
        self._pending.clear()
        self._state = SchedulerState.IDLE
        logger.info("Polling stopped")

    async def drain(self) -> None:
        """Wait until every launched load and probe task has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _timer_loop(self) -> None:
        """Run one cycle per interval until stopped."""
        interval = self._config.interval_seconds

        while self._running:
            try:
                # Wait for interval or stop
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=interval,
                    )
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass  # Tick

                if not self._running:
                    break

                await self.run_cycle()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in polling loop: {e}")
                self._state = SchedulerState.IDLE

    async def run_cycle(self) -> bool:
        """
        Run one polling cycle.

        Returns once every file has been dispatched; loads and probes keep
        running in the background (see drain()).

        Returns:
            True if the cycle ran, False if it was skipped or the directory
            could not be read
        """
        if self._config.overlap_policy is OverlapPolicy.SKIP and self._inflight:
            self._stats.cycles_skipped += 1
            logger.warning(
                f"Skipping cycle: {len(self._inflight)} tasks from an earlier "
                f"cycle still running"
            )
            return False

        self._state = SchedulerState.SCANNING
        try:
            try:
                entries = self._scanner.list_files(self._config.target_folder)
            except DirectoryReadError as e:
                self._stats.cycles_failed += 1
                self._sink.record_error(ERROR_DIRECTORY_READ)
                logger.error(f"Can't get list files, err = {e}")
                return False

            dispatched = 0
            for entry in entries:
                if entry.is_dir:
                    logger.debug(f"Skipping directory {entry.name}")
                    continue
                self._spawn(self._process_file(entry), name=f"load:{entry.name}")
                dispatched += 1

            self._stats.cycles_run += 1
            self._stats.files_seen += dispatched
            self._stats.last_cycle_at = datetime.now(timezone.utc)
            logger.debug(f"Cycle dispatched {dispatched} cluster files")
            return True

        finally:
            self._state = SchedulerState.IDLE

    async def _process_file(self, entry: FileEntry) -> None:
        """Load one cluster file and launch a probe per node."""
        logger.debug(f"Check file: {entry.name}")

        try:
            cluster = await asyncio.to_thread(self._loader.load, entry.path)
        except ConfigParseError as e:
            self._stats.files_failed += 1
            self._sink.record_error(ERROR_CONFIG_PARSE)
            logger.error(f"Can't load config in file {entry.name}, err = {e}")
            return

        for node in cluster.nodes:
            key = (node, cluster.name)
            if key in self._pending:
                # Still queued from an earlier cycle; that probe will publish
                self._stats.probes_coalesced += 1
                logger.debug(f"Probe of {node} in {cluster.name} still pending, not queued again")
                continue

            self._pending.add(key)
            task = self._spawn(
                self._update_node(node, cluster.name),
                name=f"probe:{cluster.name}:{node}",
            )
            task.add_done_callback(lambda _, key=key: self._pending.discard(key))

    async def _update_node(self, node: str, cluster_name: str) -> None:
        """Probe one node and publish the result."""
        try:
            address = NodeAddress.parse(node)
        except ValueError as e:
            self._stats.nodes_skipped += 1
            logger.warning(f"Skipping node in cluster {cluster_name}: {e}")
            return

        self._stats.probes_launched += 1
        result = await self._probe_node(address)
        self._sink.record(address.host, cluster_name, result)

    async def _probe_node(self, address: NodeAddress) -> "ProbeResult":
        if self._semaphore is None:
            return await self._probe.probe(address)

        async with self._semaphore:
            return await self._probe.probe(address)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        """Launch a tracked background task."""
        task = asyncio.create_task(coro, name=name)
        self._inflight.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        """Untrack a finished task and log anything it raised."""
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Unexpected error in {task.get_name()}: {exc!r}", exc_info=exc)
