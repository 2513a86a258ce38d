"""
Data models for cluster discovery.

These models represent:
- Cluster descriptors loaded from config files
- Node addresses parsed from "host:port" strings
- Directory entries returned by the scanner
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class NodeAddress:
    """
    A single Elasticsearch node, as listed in a cluster config file.

    Attributes:
        host: Hostname or IP (IPv6 without brackets); used as the metric label
        port: TCP port of the node's HTTP interface
    """
    host: str
    port: int

    @classmethod
    def parse(cls, value: str) -> "NodeAddress":
        """
        Parse a "host:port" string.

        IPv6 hosts must be bracketed ("[::1]:9200").

        Raises:
            ValueError: If the string has no usable host or port
        """
        if not isinstance(value, str) or not value:
            raise ValueError(f"missing port in address {value!r}")

        if value.startswith("["):
            end = value.find("]")
            if end < 0:
                raise ValueError(f"missing ']' in address {value!r}")
            host = value[1:end]
            rest = value[end + 1:]
            if not rest.startswith(":"):
                raise ValueError(f"missing port in address {value!r}")
            port_text = rest[1:]
        else:
            host, sep, port_text = value.rpartition(":")
            if not sep:
                raise ValueError(f"missing port in address {value!r}")
            if ":" in host:
                raise ValueError(f"too many colons in address {value!r}")

        if not host:
            raise ValueError(f"missing host in address {value!r}")
        if not port_text.isdigit():
            raise ValueError(f"invalid port in address {value!r}")

        port = int(port_text)
        if port > 65535:
            raise ValueError(f"port out of range in address {value!r}")

        return cls(host=host, port=port)

    @property
    def netloc(self) -> str:
        """The address in URL authority form."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.netloc


@dataclass(frozen=True)
class ClusterDescriptor:
    """
    Cluster definition loaded from one config file.

    Created fresh on every polling cycle and discarded when the cycle ends;
    there is no identity across cycles.
    """
    name: str
    nodes: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileEntry:
    """One direct child of the watched directory."""
    name: str
    path: Path
    is_dir: bool = False
