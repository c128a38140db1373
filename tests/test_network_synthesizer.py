"""
Tests for the network synthesizer: bounds, layout, determinism and the
risk-profile status mix.
"""
import itertools

import numpy as np
import pytest

from app.constants import (
    CHAIN_ORDER,
    Industry,
    NodeStatus,
    NodeType,
    Region,
    RiskProfile,
)
from app.schemas import WarehouseDetails
from simulation.network_analytics import derive_status
from simulation.network_synthesizer import (
    REGION_LOCATIONS,
    NetworkSynthesizer,
    SynthesisPolicy,
    stage_layout,
    synthesize,
)


def _payload(**overrides):
    base = {
        "region": "Europe",
        "industry": "Automotive",
        "currency": "EUR",
        "shippingMethods": ["Truck"],
        "nodeCount": 6,
        "riskProfile": "Medium",
    }
    base.update(overrides)
    return base


def _strip_timestamps(nodes):
    return [n.model_dump(exclude={"last_updated"}) for n in nodes]


class TestBounds:

    @pytest.mark.parametrize("count,risk", itertools.product(range(3, 13), ["Low", "Medium", "High"]))
    def test_metric_bounds(self, count, risk):
        nodes = synthesize(_payload(nodeCount=count, riskProfile=risk), seed=count)
        assert len(nodes) == count
        for n in nodes:
            assert 0.0 <= n.utilization_pct <= 100.0
            assert 500 <= n.capacity_units <= 2000
            assert n.status == derive_status(n.utilization_pct, n.delay_days)

    def test_ids_unique(self):
        nodes = synthesize(_payload(nodeCount=12), seed=3)
        assert len({n.id for n in nodes}) == 12


class TestLayout:

    def test_three_nodes_merge_adjacent_stages(self):
        layout = stage_layout(3)
        assert layout == [
            (NodeType.SUPPLIER,),
            (NodeType.MANUFACTURER, NodeType.WAREHOUSE),
            (NodeType.DISTRIBUTOR, NodeType.RETAILER),
        ]

    def test_merged_nodes_record_their_stages(self):
        nodes = synthesize(_payload(nodeCount=3), seed=1)
        assert [n.type for n in nodes] == [NodeType.SUPPLIER, NodeType.MANUFACTURER, NodeType.DISTRIBUTOR]
        assert nodes[1].merged_stages == (NodeType.MANUFACTURER, NodeType.WAREHOUSE)
        assert nodes[0].merged_stages == ()

    @pytest.mark.parametrize("count", range(5, 13))
    def test_every_type_present_from_five_nodes(self, count):
        types = [stages[0] for stages in stage_layout(count)]
        assert set(types) == set(NodeType)
        assert types == sorted(types, key=CHAIN_ORDER.index)

    def test_locations_follow_region_table(self):
        nodes = synthesize(_payload(region="Latin America", nodeCount=6), seed=2)
        table = REGION_LOCATIONS[Region.LATIN_AMERICA]
        assert [n.location.name for n in nodes[:4]] == [e["name"] for e in table]
        assert nodes[4].location.name == f"{table[0]['name']} #2"
        assert all(n.location.region == Region.LATIN_AMERICA for n in nodes)

    def test_distributors_always_report_delay(self):
        nodes = synthesize(_payload(nodeCount=12), seed=9)
        for n in nodes:
            if n.type == NodeType.DISTRIBUTOR:
                assert n.delay_days is not None
            else:
                assert n.delay_days is None

    def test_warehouses_report_temperature(self):
        nodes = synthesize(_payload(nodeCount=8), seed=4)
        for n in nodes:
            if NodeType.WAREHOUSE in n.stages:
                assert n.temperature_c is not None
            if n.type in (NodeType.SUPPLIER, NodeType.MANUFACTURER) and NodeType.WAREHOUSE not in n.stages:
                assert n.temperature_c is None

    def test_pharma_warehouses_are_temperature_controlled(self):
        nodes = synthesize(_payload(industry="Pharmaceuticals", nodeCount=10), seed=11)
        warehouses = [n for n in nodes if n.type == NodeType.WAREHOUSE]
        assert warehouses
        for w in warehouses:
            assert isinstance(w.type_details, WarehouseDetails)
            assert w.type_details.temperature_controlled
            assert 2.0 <= w.temperature_c <= 8.0

    def test_type_details_match_node_type(self):
        kinds = {
            NodeType.SUPPLIER: "supplier",
            NodeType.MANUFACTURER: "factory",
            NodeType.WAREHOUSE: "warehouse",
            NodeType.DISTRIBUTOR: "distribution",
            NodeType.RETAILER: "retailer",
        }
        for n in synthesize(_payload(nodeCount=12), seed=8):
            assert n.type_details.kind == kinds[n.type]


class TestDeterminism:

    def test_same_seed_same_nodes(self):
        a = synthesize(_payload(), seed=77)
        b = synthesize(_payload(), seed=77)
        assert _strip_timestamps(a) == _strip_timestamps(b)

    def test_different_seed_differs(self):
        a = synthesize(_payload(), seed=1)
        b = synthesize(_payload(), seed=2)
        assert _strip_timestamps(a) != _strip_timestamps(b)

    def test_injected_generator_is_used(self):
        a = synthesize(_payload(), rng=np.random.default_rng(5))
        b = synthesize(_payload(), seed=5)
        assert _strip_timestamps(a) == _strip_timestamps(b)

    def test_shipping_methods_do_not_change_nodes(self):
        a = synthesize(_payload(shippingMethods=["Air", "Express"]), seed=13)
        b = synthesize(_payload(shippingMethods=["Rail", "Sea"]), seed=13)
        assert _strip_timestamps(a) == _strip_timestamps(b)


class TestRiskProfileMix:
    """Healthy share converges on the configured probability."""

    TRIALS = 200

    def _status_shares(self, risk):
        counts = {s: 0 for s in NodeStatus}
        total = 0
        for seed in range(self.TRIALS):
            for n in synthesize(_payload(nodeCount=12, riskProfile=risk), seed=seed):
                counts[n.status] += 1
                total += 1
        return {s: c / total for s, c in counts.items()}

    @pytest.mark.parametrize("risk,expected", [("Low", 0.90), ("Medium", 0.70), ("High", 0.40)])
    def test_healthy_fraction(self, risk, expected):
        shares = self._status_shares(risk)
        assert shares[NodeStatus.HEALTHY] == pytest.approx(expected, abs=0.04)

    def test_remainder_split_evenly(self):
        shares = self._status_shares("High")
        assert shares[NodeStatus.WARNING] == pytest.approx(0.30, abs=0.05)
        assert shares[NodeStatus.CRITICAL] == pytest.approx(0.30, abs=0.05)

    def test_policy_override(self):
        policy = SynthesisPolicy(healthy_probability_medium=1.0)
        synth = NetworkSynthesizer(policy)
        nodes = synth.synthesize(_payload(nodeCount=12, riskProfile="Medium"), seed=3)
        assert all(n.status == NodeStatus.HEALTHY for n in nodes)


class TestCertifications:

    def test_low_risk_suppliers_mostly_certified(self):
        certified = total = 0
        for seed in range(100):
            for n in synthesize(_payload(nodeCount=12, riskProfile="Low"), seed=seed):
                if n.type == NodeType.SUPPLIER:
                    total += 1
                    certified += bool(n.type_details.certifications)
        assert certified / total == pytest.approx(0.95, abs=0.05)

    def test_industry_specific_supplier_certifications(self):
        policy = SynthesisPolicy(certification_coverage_medium=1.0)
        nodes = NetworkSynthesizer(policy).synthesize(_payload(industry="Food&Beverage"), seed=1)
        supplier = next(n for n in nodes if n.type == NodeType.SUPPLIER)
        assert "HACCP" in supplier.type_details.certifications
        assert Industry.FOOD_BEVERAGE.value == "Food&Beverage"

    def test_high_risk_profile_enum(self):
        assert RiskProfile("high") == RiskProfile.HIGH
