"""
Elasticsearch Connectivity Exporter - Main Entry Point

Polls the clusters defined in a directory of JSON files and serves their
node connectivity as Prometheus metrics.

Usage:
    python -m es_exporter.main --folder /etc/es-exporter/clusters --port 9108
    python -m es_exporter.main --folder ./clusters --log-file exporter.log
    python -m es_exporter.main --folder ./clusters --overlap-policy skip

Cluster files:
    {"cluster_name": "logs-prod", "node_list": ["10.0.0.1:9200", "10.0.0.2:9200"]}

Configuration:
    The exporter reads configuration from:
    1. Environment variables (a .env file in the working directory is loaded)
    2. Command line arguments (take precedence)

Environment Variables:
    EXPORTER_TARGET_FOLDER    Directory with cluster JSON files (required)
    EXPORTER_PORT             Metrics port (default: 9108)
    EXPORTER_HOST             Metrics bind address (default: 0.0.0.0)
    EXPORTER_METRICS_PATH     Scrape route (default: /metrics)
    EXPORTER_LOG_FILE         Append logs to this file instead of the console
    EXPORTER_TIMEOUT          Per-request timeout in seconds (default: 2)
    EXPORTER_INTERVAL         Polling interval in seconds (default: 15)
    EXPORTER_MAX_CONCURRENCY  Concurrent probes, 0 = unbounded (default: 64)
    EXPORTER_OVERLAP_POLICY   allow | skip (default: allow)
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import math
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from es_exporter.core import OverlapPolicy, PollingScheduler, SchedulerConfig
from es_exporter.discovery import DirectoryReadError, DirectoryScanner
from es_exporter.monitoring import HEALTH_PATH, MetricsServer, MetricsSink, create_app
from es_exporter.probing import DEFAULT_TIMEOUT_SECONDS, NodeProbe

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


class ExporterConfigError(Exception):
    """Raised when the startup configuration is invalid."""
    pass


@dataclass
class ExporterConfig:
    """Complete exporter configuration."""

    # Cluster discovery
    target_folder: str = ""

    # Metrics endpoint
    host: str = "0.0.0.0"
    port: int = 9108
    metrics_path: str = "/metrics"

    # Logging
    log_file: Optional[str] = None
    log_level: str = "INFO"

    # Polling
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    interval_seconds: float = 15.0
    max_concurrency: int = 64
    overlap_policy: str = OverlapPolicy.ALLOW.value

    @classmethod
    def from_env(cls) -> "ExporterConfig":
        """Load configuration from environment variables."""
        return cls(
            target_folder=os.environ.get("EXPORTER_TARGET_FOLDER", ""),
            host=os.environ.get("EXPORTER_HOST", "0.0.0.0"),
            port=int(os.environ.get("EXPORTER_PORT", "9108")),
            metrics_path=os.environ.get("EXPORTER_METRICS_PATH", "/metrics"),
            log_file=os.environ.get("EXPORTER_LOG_FILE") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            timeout_seconds=float(os.environ.get("EXPORTER_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
            interval_seconds=float(os.environ.get("EXPORTER_INTERVAL", "15")),
            max_concurrency=int(os.environ.get("EXPORTER_MAX_CONCURRENCY", "64")),
            overlap_policy=os.environ.get("EXPORTER_OVERLAP_POLICY", "allow").lower(),
        )

    def apply_args(self, args: argparse.Namespace) -> None:
        """Override fields with command line arguments that were given."""
        overrides = {
            "target_folder": args.folder,
            "host": args.host,
            "port": args.port,
            "metrics_path": args.metrics_path,
            "log_file": args.log_file,
            "log_level": args.log_level,
            "timeout_seconds": args.timeout_value,
            "interval_seconds": args.interval,
            "max_concurrency": args.max_concurrency,
            "overlap_policy": args.overlap_policy,
        }
        for name, value in overrides.items():
            if value is not None:
                setattr(self, name, value)

    def validate(self) -> None:
        """
        Check the configuration.

        Raises:
            ExporterConfigError: On the first invalid value found
        """
        if not self.target_folder:
            raise ExporterConfigError("A target folder is required (--folder)")
        if not 0 <= self.port <= 65535:
            raise ExporterConfigError(f"Invalid port: {self.port}")
        if not self.metrics_path.startswith("/"):
            raise ExporterConfigError(f"Metrics path must start with '/': {self.metrics_path}")
        if self.metrics_path.rstrip("/") == HEALTH_PATH:
            raise ExporterConfigError(f"Metrics path would hide the health endpoint: {self.metrics_path}")
        if not math.isfinite(self.timeout_seconds) or self.timeout_seconds <= 0:
            raise ExporterConfigError(f"Timeout must be a positive number: {self.timeout_seconds}")
        if not math.isfinite(self.interval_seconds) or self.interval_seconds <= 0:
            raise ExporterConfigError(f"Interval must be a positive number: {self.interval_seconds}")
        if self.max_concurrency < 0:
            raise ExporterConfigError(f"Max concurrency cannot be negative: {self.max_concurrency}")
        if self.overlap_policy not in {p.value for p in OverlapPolicy}:
            raise ExporterConfigError(f"Unknown overlap policy: {self.overlap_policy}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ExporterConfigError(f"Unknown log level: {self.log_level}")

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            target_folder=self.target_folder,
            interval_seconds=self.interval_seconds,
            max_concurrency=self.max_concurrency,
            overlap_policy=OverlapPolicy(self.overlap_policy),
        )


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging.

    Logs go to the console, or are appended to log_file when given.

    Raises:
        OSError: If the log file cannot be opened
    """
    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[handler],
        force=True,
    )


class Exporter:
    """
    Exporter orchestrator.

    Manages the lifecycle of:
    - The metrics sink and its HTTP endpoint
    - The shared node probe (aiohttp session)
    - The polling scheduler
    """

    def __init__(self, config: ExporterConfig, sink: Optional[MetricsSink] = None):
        self.config = config
        self._sink = sink
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized on start)
        self._probe: Optional[NodeProbe] = None
        self._scheduler: Optional[PollingScheduler] = None
        self._server: Optional[MetricsServer] = None

    @property
    def scheduler(self) -> Optional[PollingScheduler]:
        return self._scheduler

    @property
    def sink(self) -> Optional[MetricsSink]:
        return self._sink

    @property
    def server(self) -> Optional[MetricsServer]:
        return self._server

    async def start(self) -> None:
        """
        Start the exporter and run until shutdown is requested.

        Raises:
            DirectoryReadError: If the target folder cannot be read at startup
            OSError: If the metrics port cannot be bound
        """
        logger.info("---------- Start service ----------")

        self._running = True
        self._shutdown_event.clear()
        self._setup_signal_handlers()

        try:
            # Fail fast on a folder that is not there at all
            DirectoryScanner().list_files(self.config.target_folder)

            if self._sink is None:
                self._sink = MetricsSink()

            self._init_metrics_server()

            self._probe = NodeProbe(timeout=self.config.timeout_seconds)

            self._scheduler = PollingScheduler(
                config=self.config.scheduler_config(),
                probe=self._probe,
                sink=self._sink,
            )
            await self._scheduler.start()

            logger.info("Exporter started, press Ctrl+C to stop")
            await self._shutdown_event.wait()

        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the exporter gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        # Stop components in reverse order
        if self._scheduler:
            try:
                await self._scheduler.stop()
            except Exception as e:
                logger.warning(f"Error stopping scheduler: {e}")

        if self._probe:
            try:
                await self._probe.close()
            except Exception as e:
                logger.warning(f"Error closing probe session: {e}")

        if self._server:
            try:
                self._server.stop()
            except Exception as e:
                logger.warning(f"Error stopping metrics server: {e}")

        logger.info("Shutdown complete")

    def request_shutdown(self, reason: str = "manual") -> None:
        """Ask the run loop to exit."""
        logger.info(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    def status(self) -> Dict[str, Any]:
        """Extra fields for the /health endpoint."""
        if self._scheduler is None:
            return {"scheduler": None}
        return {
            "scheduler": {
                "state": self._scheduler.state.value,
                "inflight": self._scheduler.inflight_count,
                **self._scheduler.stats.to_dict(),
            }
        }

    def _init_metrics_server(self) -> None:
        app = create_app(
            self._sink,
            metrics_path=self.config.metrics_path,
            status_provider=self.status,
        )
        self._server = MetricsServer(app, host=self.config.host, port=self.config.port)
        self._server.start()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(
                    sig, lambda s=sig: self.request_shutdown(f"signal {s.name}")
                )
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Elasticsearch node connectivity exporter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--folder", type=str, help="Directory containing cluster JSON files")
    parser.add_argument("--port", type=int, help="Port for the metrics endpoint")
    parser.add_argument("--host", type=str, help="Bind address for the metrics endpoint")
    parser.add_argument("--metrics-path", type=str, help="Route of the scrape endpoint")
    parser.add_argument("--log-file", type=str, help="Append logs to this file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    parser.add_argument(
        "--timeout-value",
        type=float,
        help="Timeout for each node request, in seconds",
    )
    parser.add_argument("--interval", type=float, help="Polling interval in seconds")
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum concurrent probes (0 = unbounded)",
    )
    parser.add_argument(
        "--overlap-policy",
        choices=[p.value for p in OverlapPolicy],
        help="Run (allow) or drop (skip) a cycle while probes are still running",
    )
    return parser


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


async def main_async(config: ExporterConfig) -> int:
    """Async main function."""
    exporter = Exporter(config)

    try:
        await exporter.start()
        return 0
    except DirectoryReadError as e:
        logger.error(f"Target folder is not readable: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot start metrics endpoint on port {config.port}: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_env_file()
    args = parse_args(argv)

    try:
        config = ExporterConfig.from_env()
    except ValueError as e:
        print(f"Invalid environment configuration: {e}", file=sys.stderr)
        return 1

    config.apply_args(args)

    try:
        config.validate()
    except ExporterConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        setup_logging(config.log_level, config.log_file)
    except OSError as e:
        print(f"error opening file: {e}", file=sys.stderr)
        return 1

    print("Running....")

    try:
        return asyncio.run(main_async(config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
