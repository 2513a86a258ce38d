"""
Discovery layer test fixtures.

All files are written under pytest's tmp_path; nothing outside it is read.
"""
import json

import pytest

from es_exporter.discovery.loader import ConfigLoader
from es_exporter.discovery.scanner import DirectoryScanner


@pytest.fixture
def loader():
    """ConfigLoader with default settings."""
    return ConfigLoader()


@pytest.fixture
def scanner():
    """DirectoryScanner instance."""
    return DirectoryScanner()


@pytest.fixture
def cluster_dir(tmp_path):
    """Empty directory standing in for the watched cluster folder."""
    directory = tmp_path / "clusters"
    directory.mkdir()
    return directory


@pytest.fixture
def write_cluster(cluster_dir):
    """Write a cluster config document (dict or raw text) into cluster_dir."""

    def _write(filename, document):
        path = cluster_dir / filename
        if isinstance(document, str):
            path.write_text(document)
        else:
            path.write_text(json.dumps(document))
        return path

    return _write
