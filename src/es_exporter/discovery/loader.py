"""
Cluster config loader.

Parses one cluster-definition file into a ClusterDescriptor.

File format:
    {
        "cluster_name": "logs-prod",
        "node_list": ["10.0.0.1:9200", "10.0.0.2:9200"]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Union

from .models import ClusterDescriptor

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Base exception for cluster discovery errors."""

    def __init__(self, message: str, path: Union[str, Path, None] = None):
        super().__init__(message)
        self.path = path


class ConfigParseError(DiscoveryError):
    """Cluster config file is unreadable or malformed."""
    pass


class ConfigLoader:
    """
    Loads cluster descriptors from JSON files.

    Parsing is lenient where the file is still usable: a missing node list
    yields an empty descriptor, and non-string node entries are dropped.
    Everything else that is wrong with the file raises ConfigParseError so the
    caller can skip it.

    Usage:
        loader = ConfigLoader()
        cluster = loader.load("/etc/es-exporter/clusters/logs.json")
        for node in cluster.nodes:
            ...
    """

    NAME_KEY = "cluster_name"
    NODES_KEY = "node_list"

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def load(self, path: Union[str, Path]) -> ClusterDescriptor:
        """
        Load a cluster descriptor from a file.

        Args:
            path: Path to the JSON config file

        Returns:
            ClusterDescriptor parsed from the file

        Raises:
            ConfigParseError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            text = path.read_text(encoding=self._encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigParseError(f"Cannot read {path}: {e}", path=path) from e

        return self.loads(text, source=path)

    def loads(
        self,
        text: str,
        source: Union[str, Path, None] = None,
    ) -> ClusterDescriptor:
        """
        Parse a cluster descriptor from JSON text.

        Args:
            text: JSON document
            source: Where the text came from (used in messages only)

        Raises:
            ConfigParseError: If the document is not a valid cluster definition
        """
        label = source if source is not None else "<string>"

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Invalid JSON in {label}: {e}", path=source) from e

        if not isinstance(data, dict):
            raise ConfigParseError(
                f"Expected a JSON object in {label}, got {type(data).__name__}",
                path=source,
            )

        name = data.get(self.NAME_KEY)
        if not isinstance(name, str) or not name:
            raise ConfigParseError(
                f"Missing or invalid '{self.NAME_KEY}' in {label}",
                path=source,
            )

        return ClusterDescriptor(name=name, nodes=self._parse_nodes(data, label, source))

    def _parse_nodes(
        self,
        data: dict[str, Any],
        label: Any,
        source: Union[str, Path, None],
    ) -> tuple[str, ...]:
        """Extract the node list, dropping entries that are not strings."""
        if self.NODES_KEY not in data:
            logger.warning(f"No '{self.NODES_KEY}' in {label}, cluster has no nodes")
            return ()

        raw_nodes = data[self.NODES_KEY]
        if raw_nodes is None:
            logger.warning(f"'{self.NODES_KEY}' is null in {label}, cluster has no nodes")
            return ()
        if not isinstance(raw_nodes, list):
            raise ConfigParseError(
                f"'{self.NODES_KEY}' must be a list in {label}",
                path=source,
            )

        nodes = []
        for entry in raw_nodes:
            if isinstance(entry, str):
                nodes.append(entry)
            else:
                logger.warning(f"Ignoring non-string node entry {entry!r} in {label}")

        return tuple(nodes)
