"""
HTTP probe for Elasticsearch nodes.

Issues one GET to a node's /_cluster/stats endpoint per call and turns the
response into a ProbeResult. There is no retry: a failed probe is
reported as failed=1 and the next polling cycle tries again.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Union

import aiohttp

from es_exporter.discovery.models import NodeAddress

from .models import ProbeResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 2.0
CLUSTER_STATS_PATH = "/_cluster/stats"
# Only "_nodes" is used; anything past this is not a stats document
MAX_BODY_BYTES = 8 * 1024 * 1024


class ProbeError(Exception):
    """Base exception for probe errors."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


class ProbeTransportError(ProbeError):
    """Request did not complete (timeout, refused, DNS, reset)."""
    pass


class ProbeDecodeError(ProbeError):
    """Response body is not a usable cluster stats document."""
    pass


class NodeProbe:
    """
    Async cluster-stats probe.

    One aiohttp session is shared by all probes issued through this object.
    The probe never raises for network or decode problems; those become
    ProbeResult values so a bad node cannot break the polling cycle.

    Usage:
        async with NodeProbe(timeout=2.0) as probe:
            result = await probe.probe("10.0.0.1:9200")
            print(result.total, result.successful, result.failed)
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        scheme: str = "http",
        max_body_bytes: int = MAX_BODY_BYTES,
    ):
        """
        Initialize the probe.

        Args:
            session: Optional aiohttp session (created if not provided)
            timeout: Per-request timeout in seconds
            scheme: URL scheme used to reach the nodes
            max_body_bytes: Larger responses are dropped as undecodable
        """
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._scheme = scheme
        self._max_body_bytes = max_body_bytes

    @property
    def timeout(self) -> float:
        return self._timeout

    async def __aenter__(self) -> "NodeProbe":
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the session if this probe created it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def url_for(self, address: Union[str, NodeAddress]) -> str:
        """Build the cluster stats URL for a node."""
        netloc = address.netloc if isinstance(address, NodeAddress) else address
        return f"{self._scheme}://{netloc}{CLUSTER_STATS_PATH}"

    async def probe(
        self,
        address: Union[str, NodeAddress],
        timeout: Optional[float] = None,
    ) -> ProbeResult:
        """
        Probe one node.

        Args:
            address: Node address ("host:port" or NodeAddress)
            timeout: Override the default per-request timeout (seconds)

        Returns:
            ProbeResult with the node's reported connectivity, a transport
            failure (failed=1), or a zero-valued decode failure

        Raises:
            asyncio.CancelledError: When the task is cancelled (re-raised)
        """
        url = self.url_for(address)

        try:
            body = await self._fetch(url, timeout if timeout is not None else self._timeout)
            return self.decode(body, source=url)
        except ProbeTransportError as e:
            logger.error(f"The HTTP request to {url} failed with error: {e}")
            return ProbeResult.transport_failure()
        except ProbeDecodeError as e:
            logger.warning(f"Failed to parse node info from {url}: {e}")
            return ProbeResult.decode_failure()

    async def _fetch(self, url: str, timeout: float) -> bytes:
        """
        GET the URL and return the raw body.

        The status code is not interpreted; error bodies are handed to the
        decoder like any other.

        Raises:
            ProbeTransportError: If the request does not complete
            ProbeDecodeError: If the body exceeds max_body_bytes
        """
        session = self._ensure_session()

        try:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status >= 400:
                    logger.debug(f"{url} answered HTTP {response.status}")

                body = bytearray()
                async for chunk in response.content.iter_chunked(64 * 1024):
                    body.extend(chunk)
                    if len(body) > self._max_body_bytes:
                        raise ProbeDecodeError(
                            f"response larger than {self._max_body_bytes} bytes",
                            address=url,
                        )
                return bytes(body)

        except asyncio.CancelledError:
            raise

        except asyncio.TimeoutError as e:
            raise ProbeTransportError(f"timed out after {timeout}s", address=url) from e

        except (aiohttp.ClientError, OSError) as e:
            raise ProbeTransportError(str(e) or type(e).__name__, address=url) from e

    @staticmethod
    def decode(body: Union[bytes, str], source: Optional[str] = None) -> ProbeResult:
        """
        Decode a /_cluster/stats body.

        Args:
            body: Raw response body
            source: Where the body came from (used in messages only)

        Returns:
            ProbeResult with the "_nodes" counts copied verbatim

        Raises:
            ProbeDecodeError: If the body has no usable "_nodes" section
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProbeDecodeError(f"invalid JSON: {e}", address=source) from e

        nodes = data.get("_nodes") if isinstance(data, dict) else None
        if not isinstance(nodes, dict):
            raise ProbeDecodeError("response has no '_nodes' object", address=source)

        return ProbeResult(
            total=_count(nodes, "total", source),
            successful=_count(nodes, "successful", source),
            failed=_count(nodes, "failed", source),
        )


def _count(nodes: dict[str, Any], key: str, source: Optional[str]) -> int:
    """Read one integer count; absent keys count as zero."""
    value = nodes.get(key, 0)
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProbeDecodeError(f"'_nodes.{key}' is not an integer: {value!r}", address=source)
    return value
