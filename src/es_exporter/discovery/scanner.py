"""
Directory scanner for cluster config discovery.

Lists the direct children of the watched directory. The directory is polled
on every cycle; there is no file watching.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Union

from .loader import DiscoveryError
from .models import FileEntry

logger = logging.getLogger(__name__)


class DirectoryReadError(DiscoveryError):
    """Watched directory is missing, not a directory, or unreadable."""
    pass


class DirectoryScanner:
    """
    Non-recursive directory listing.

    Directory entries are returned with is_dir=True; filtering them out is
    left to the caller.

    Usage:
        scanner = DirectoryScanner()
        for entry in scanner.list_files("/etc/es-exporter/clusters"):
            if not entry.is_dir:
                ...
    """

    def list_files(self, path: Union[str, Path]) -> List[FileEntry]:
        """
        List entries in a directory, sorted by name.

        Args:
            path: Directory to list

        Returns:
            One FileEntry per direct child

        Raises:
            DirectoryReadError: If the directory cannot be read
        """
        path = Path(path)
        entries = []

        try:
            with os.scandir(path) as it:
                for entry in it:
                    try:
                        is_dir = entry.is_dir()
                    except OSError:
                        # Broken entry (e.g. permission on stat); let the loader report it
                        is_dir = False
                    entries.append(FileEntry(
                        name=entry.name,
                        path=Path(entry.path),
                        is_dir=is_dir,
                    ))
        except OSError as e:
            raise DirectoryReadError(f"Cannot list {path}: {e}", path=path) from e

        entries.sort(key=lambda e: e.name)
        logger.debug(f"Found {len(entries)} entries in {path}")
        return entries
