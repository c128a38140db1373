"""
Pytest configuration and fixtures for the supply-chain test suite.
"""
from typing import Dict, Optional, Tuple

import pytest

from app.constants import NodeType
from app.schemas import NetworkSnapshot, SupplierDetails, FactoryDetails, SupplyChainConfig
from simulation.network_analytics import derive_status
from simulation.network_store import NetworkStateStore


E2E_CONFIG = {
    "region": "Asia-Pacific",
    "industry": "Electronics",
    "currency": "USD",
    "shippingMethods": ["Sea", "Air", "Rail"],
    "nodeCount": 6,
    "riskProfile": "Low",
}


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def config_payload() -> Dict:
    return dict(E2E_CONFIG)


@pytest.fixture
def config(config_payload) -> SupplyChainConfig:
    return SupplyChainConfig.from_payload(config_payload)


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def empty_store() -> NetworkStateStore:
    return NetworkStateStore(seed=1234)


@pytest.fixture
def store(config_payload) -> NetworkStateStore:
    s = NetworkStateStore(seed=1234)
    s.set_configuration(config_payload, seed=42)
    return s


@pytest.fixture
def snapshot(store) -> NetworkSnapshot:
    return store.get_state()


# ============================================================================
# Snapshot helpers
# ============================================================================

def with_metrics(
    snapshot: NetworkSnapshot,
    metrics: Dict[str, Tuple[float, Optional[float]]],
) -> NetworkSnapshot:
    """Copy of `snapshot` with (utilization, delay) forced on the given nodes."""
    nodes = []
    for node in snapshot.nodes:
        if node.id in metrics:
            util, delay = metrics[node.id]
            node = node.model_copy(update={
                "utilization_pct": util,
                "delay_days": delay,
                "inventory_units": int(round(node.capacity_units * util / 100.0)),
                "status": derive_status(util, delay),
            })
        nodes.append(node)
    return snapshot.model_copy(update={"nodes": tuple(nodes)})


def all_healthy(snapshot: NetworkSnapshot, utilization: float = 75.0) -> NetworkSnapshot:
    return with_metrics(snapshot, {
        n.id: (utilization, 0.0 if n.type == NodeType.DISTRIBUTOR else None)
        for n in snapshot.nodes
    })


def with_configuration(snapshot: NetworkSnapshot, **changes) -> NetworkSnapshot:
    cfg = snapshot.configuration.model_dump()
    cfg.update(changes)
    return snapshot.model_copy(update={"configuration": SupplyChainConfig.from_payload(cfg)})


def with_certifications(snapshot: NetworkSnapshot, certified: bool) -> NetworkSnapshot:
    nodes = []
    for node in snapshot.nodes:
        details = node.type_details
        if isinstance(details, (SupplierDetails, FactoryDetails)):
            certs = ("ISO 9001", "ISO 14001") if certified else ()
            node = node.model_copy(update={
                "type_details": details.model_copy(update={"certifications": certs})
            })
        nodes.append(node)
    return snapshot.model_copy(update={"nodes": tuple(nodes)})


@pytest.fixture
def healthy_snapshot(snapshot) -> NetworkSnapshot:
    return all_healthy(snapshot)
