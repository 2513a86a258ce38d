"""
Metrics endpoint for Prometheus scraping.

Provides a Flask application exposing the metrics registry, and a small
wrapper that serves it from a background thread so the asyncio event loop
running the scheduler is never blocked.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST
from werkzeug.serving import make_server

if TYPE_CHECKING:
    from .metrics import MetricsSink

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PATH = "/metrics"
HEALTH_PATH = "/health"


def create_app(
    sink: "MetricsSink",
    metrics_path: str = DEFAULT_METRICS_PATH,
    status_provider: Optional[Callable[[], Dict[str, Any]]] = None,
    testing: bool = False,
) -> Flask:
    """
    Create the Flask application.

    Args:
        sink: MetricsSink whose registry is exposed
        metrics_path: Route for the scrape endpoint
        status_provider: Optional callable returning extra /health fields
        testing: Enable Flask testing mode

    Returns:
        Configured Flask application

    Raises:
        ValueError: If metrics_path collides with the health route
    """
    if metrics_path.rstrip("/") == HEALTH_PATH:
        raise ValueError(f"metrics_path {metrics_path!r} collides with {HEALTH_PATH}")

    app = Flask(__name__)
    app.config["TESTING"] = testing

    def metrics() -> Response:
        return Response(sink.render(), content_type=CONTENT_TYPE_LATEST)

    app.add_url_rule(metrics_path, "metrics", metrics, methods=["GET"])

    @app.route(HEALTH_PATH)
    def health():
        payload: Dict[str, Any] = {"status": "ok"}
        if status_provider is not None:
            try:
                payload.update(status_provider())
            except Exception as e:
                logger.error(f"Status provider failed: {e}")
                payload["status"] = "degraded"
        return jsonify(payload)

    return app


class MetricsServer:
    """
    Serves the metrics app from a daemon thread.

    Uses werkzeug's threaded server so concurrent scrapes are handled while
    the scheduler keeps writing to the registry.

    Usage:
        server = MetricsServer(app, host="0.0.0.0", port=9108)
        server.start()
        ...
        server.stop()
    """

    def __init__(self, app: Flask, host: str = "0.0.0.0", port: int = 9108) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        """Bound port (useful when started with port 0)."""
        if self._server is not None:
            return self._server.server_port
        return self._port

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Bind the socket and start serving.

        Binding happens on the calling thread so that an unusable port is
        reported to the caller instead of being lost in the server thread.

        Raises:
            OSError: If the port cannot be bound
        """
        if self._server is not None:
            logger.warning("MetricsServer already running")
            return

        try:
            self._server = make_server(
                host=self._host,
                port=self._port,
                app=self._app,
                threaded=True,
            )
        except SystemExit as e:
            # werkzeug exits the process when the bind fails
            raise OSError(f"Cannot bind {self._host}:{self._port}") from e

        def serve():
            try:
                self._server.serve_forever()
            except Exception as e:
                logger.error(f"Metrics server failed: {e}")

        self._thread = threading.Thread(target=serve, name="metrics-server", daemon=True)
        self._thread.start()
        logger.info(f"Metrics: http://{self._host}:{self.port}")

    def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._server:
            logger.info("Metrics server: Shutting down...")
            # shutdown() stops serve_forever loop
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        if self._thread:
            if self._thread.is_alive():
                self._thread.join(timeout=5)
                if self._thread.is_alive():
                    logger.warning("Metrics server thread did not stop cleanly")
            self._thread = None
