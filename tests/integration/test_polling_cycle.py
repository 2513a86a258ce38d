"""
End-to-end polling cycle tests.

Directory -> loader -> real HTTP probe -> sink -> /metrics exposition.
"""

import pytest

from es_exporter.core import OverlapPolicy, PollingScheduler, SchedulerConfig

pytestmark = pytest.mark.integration


def _sample(metric, ip, cluster, value):
    return f'{metric}{{cluster="{cluster}",ip="{ip}"}} {value}'


class TestPollingCycle:
    """Full cycles against simulated nodes."""

    @pytest.mark.asyncio
    async def test_one_healthy_one_unreachable_node(
        self, cluster_dir, write_cluster, routed_probe, healthy_node, refused_address, sink, scrape,
    ):
        """
        c1 has a healthy node and an unreachable one; after one cycle the
        exported metrics show failed=0/successful=3 and failed=1 respectively.
        """
        write_cluster("c1.json", {
            "cluster_name": "c1",
            "node_list": ["10.0.0.1:9200", "10.0.0.2:9200"],
        })
        probe = routed_probe({
            "10.0.0.1:9200": healthy_node,
            "10.0.0.2:9200": refused_address,
        })
        scheduler = PollingScheduler(
            config=SchedulerConfig(target_folder=cluster_dir),
            probe=probe,
            sink=sink,
        )

        await scheduler.run_cycle()
        await scheduler.drain()

        body = scrape()
        assert _sample("elasticsearch_node_connectivity_failed", "10.0.0.1", "c1", "0.0") in body
        assert _sample("elasticsearch_node_connectivity_successful", "10.0.0.1", "c1", "3.0") in body
        assert _sample("elasticsearch_node_connectivity_total", "10.0.0.1", "c1", "3.0") in body
        assert _sample("elasticsearch_node_connectivity_failed", "10.0.0.2", "c1", "1.0") in body
        assert _sample("elasticsearch_node_connectivity_successful", "10.0.0.2", "c1", "0.0") in body
        assert 'elasticsearch_exporter_errors_total{kind="probe_transport"} 1.0' in body

    @pytest.mark.asyncio
    async def test_malformed_config_does_not_block_valid_config(
        self, cluster_dir, write_cluster, routed_probe, healthy_node, sink, scrape,
    ):
        write_cluster("broken.json", "{not json")
        write_cluster("good.json", {"cluster_name": "good", "node_list": ["10.1.0.1:9200"]})
        probe = routed_probe({"10.1.0.1:9200": healthy_node})
        scheduler = PollingScheduler(
            config=SchedulerConfig(target_folder=cluster_dir),
            probe=probe,
            sink=sink,
        )

        await scheduler.run_cycle()
        await scheduler.drain()

        body = scrape()
        assert _sample("elasticsearch_node_connectivity_total", "10.1.0.1", "good", "3.0") in body
        assert 'elasticsearch_exporter_errors_total{kind="config_parse"} 1.0' in body

    @pytest.mark.asyncio
    async def test_direct_probe_of_local_node(
        self, cluster_dir, write_cluster, node_probe, healthy_node, sink,
    ):
        """Without routing, the configured address is probed as-is."""
        write_cluster("local.json", {"cluster_name": "local", "node_list": [healthy_node]})
        scheduler = PollingScheduler(
            config=SchedulerConfig(
                target_folder=cluster_dir,
                overlap_policy=OverlapPolicy.SKIP,
            ),
            probe=node_probe,
            sink=sink,
        )

        await scheduler.run_cycle()
        await scheduler.drain()

        host = healthy_node.rsplit(":", 1)[0]
        assert sink.get(host, "local") == {"failed": 0.0, "successful": 3.0, "total": 3.0}

    @pytest.mark.asyncio
    async def test_repeated_cycles_are_stable(
        self, cluster_dir, write_cluster, routed_probe, healthy_node, sink, scrape,
    ):
        """Re-probing an unchanged topology leaves the exposition unchanged."""
        write_cluster("c1.json", {"cluster_name": "c1", "node_list": ["10.0.0.1:9200"]})
        probe = routed_probe({"10.0.0.1:9200": healthy_node})
        scheduler = PollingScheduler(
            config=SchedulerConfig(target_folder=cluster_dir),
            probe=probe,
            sink=sink,
        )

        await scheduler.run_cycle()
        await scheduler.drain()
        first = scrape()

        await scheduler.run_cycle()
        await scheduler.drain()

        assert scrape() == first
