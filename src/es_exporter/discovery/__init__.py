"""
Discovery Layer - Cluster definitions from a watched directory.

This module provides:
    - DirectoryScanner: Non-recursive listing of the watched directory
    - ConfigLoader: Parses one JSON file into a ClusterDescriptor
    - ClusterDescriptor: Cluster name + ordered node list
    - NodeAddress: Parsed "host:port" node address
    - FileEntry: One directory entry

Errors:
    - DirectoryReadError: Directory missing/unreadable (cycle is skipped)
    - ConfigParseError: File unreadable or malformed (file is skipped)
"""

from .loader import ConfigLoader, ConfigParseError, DiscoveryError
from .models import ClusterDescriptor, FileEntry, NodeAddress
from .scanner import DirectoryReadError, DirectoryScanner

__all__ = [
    "ClusterDescriptor",
    "ConfigLoader",
    "ConfigParseError",
    "DirectoryReadError",
    "DirectoryScanner",
    "DiscoveryError",
    "FileEntry",
    "NodeAddress",
]
