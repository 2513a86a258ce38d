"""
Elasticsearch Connectivity Exporter.

Periodically probes the nodes of a set of Elasticsearch clusters and
republishes their self-reported node connectivity (total/successful/failed)
as Prometheus gauges. Cluster definitions are discovered from a directory of
JSON files that is re-read on every polling cycle.
"""

__version__ = "0.1.0"
