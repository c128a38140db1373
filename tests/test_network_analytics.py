"""
Tests for status derivation, cause classification and chain topology.
"""
import pytest

from app.constants import CHAIN_ORDER, AnomalyCause, NodeStatus, NodeType
from simulation.network_analytics import (
    build_supply_chain_graph,
    chain_stage,
    classify_cause,
    derive_status,
    downstream_of,
    nodes_frame,
)
from simulation.network_synthesizer import synthesize

from conftest import with_metrics


class TestDeriveStatus:

    @pytest.mark.parametrize("util,delay,expected", [
        (60.0, None, NodeStatus.HEALTHY),
        (95.0, None, NodeStatus.HEALTHY),
        (77.0, 0.0, NodeStatus.HEALTHY),
        (77.0, 2.5, NodeStatus.WARNING),
        (59.9, None, NodeStatus.WARNING),
        (40.0, None, NodeStatus.WARNING),
        (95.1, None, NodeStatus.WARNING),
        (98.0, None, NodeStatus.WARNING),
        (39.9, None, NodeStatus.CRITICAL),
        (98.1, None, NodeStatus.CRITICAL),
        (0.0, None, NodeStatus.CRITICAL),
        (100.0, 3.0, NodeStatus.CRITICAL),
    ])
    def test_bands(self, util, delay, expected):
        assert derive_status(util, delay) == expected


class TestClassifyCause:

    def test_causes_follow_metrics(self, snapshot):
        ids = snapshot.node_ids
        forced = with_metrics(snapshot, {
            ids[0]: (20.0, None),
            ids[1]: (99.5, None),
            ids[2]: (80.0, 3.0),
            ids[3]: (50.0, None),
            ids[4]: (97.0, None),
            ids[5]: (80.0, 0.0 if snapshot.nodes[5].type == NodeType.DISTRIBUTOR else None),
        })
        causes = [classify_cause(n) for n in forced.nodes]
        assert causes == [
            AnomalyCause.DEMAND_SHORTFALL,
            AnomalyCause.CAPACITY_CONSTRAINT,
            AnomalyCause.LOGISTICS_DELAY,
            AnomalyCause.UNDERUTILIZATION,
            AnomalyCause.NEAR_CAPACITY,
            None,
        ]


class TestTopology:

    def test_chain_feeds_forward(self, snapshot):
        graph = build_supply_chain_graph(snapshot.nodes)
        retailers = [n.id for n in snapshot.nodes if n.type == NodeType.RETAILER]
        suppliers = [n.id for n in snapshot.nodes if n.type == NodeType.SUPPLIER]
        for r in retailers:
            assert graph.out_degree(r) == 0
        for s in suppliers:
            assert set(retailers) <= set(downstream_of(graph, [s]))

    def test_downstream_excludes_sources(self, snapshot):
        graph = build_supply_chain_graph(snapshot.nodes)
        first = snapshot.node_ids[0]
        downstream = downstream_of(graph, [first])
        assert first not in downstream
        assert downstream_of(graph, snapshot.node_ids) == []

    def test_merged_three_node_chain_is_a_path(self, config_payload):
        config_payload["nodeCount"] = 3
        nodes = synthesize(config_payload, seed=5)
        graph = build_supply_chain_graph(nodes)
        assert list(graph.edges) == [(nodes[0].id, nodes[1].id), (nodes[1].id, nodes[2].id)]
        assert nodes[1].stages == (NodeType.MANUFACTURER, NodeType.WAREHOUSE)
        assert chain_stage(nodes[1]) == CHAIN_ORDER.index(NodeType.MANUFACTURER)
        assert list(graph.successors(nodes[1].id)) == [nodes[2].id]


class TestNodesFrame:

    def test_one_row_per_node(self, snapshot):
        df = nodes_frame(snapshot.nodes)
        assert len(df) == len(snapshot.nodes)
        assert list(df["id"]) == snapshot.node_ids
        assert df["utilization_pct"].between(0, 100).all()
