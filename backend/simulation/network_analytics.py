"""
Shared network analytics used by the store and every agent.

Status derivation and cause classification live here so that no two
components can disagree about what "Critical" means for a node.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Set

import networkx as nx
import pandas as pd

from app.constants import (
    CHAIN_ORDER,
    CRITICAL_HIGH_UTILIZATION,
    CRITICAL_LOW_UTILIZATION,
    HEALTHY_MAX_UTILIZATION,
    HEALTHY_MIN_UTILIZATION,
    AnomalyCause,
    NodeStatus,
)
from app.schemas import SupplyChainNode

logger = logging.getLogger(__name__)

NODE_FRAME_COLUMNS = [
    "id", "name", "type", "stage", "status", "utilization_pct", "capacity_units",
    "inventory_units", "delay_days", "temperature_c", "cause",
]


def derive_status(utilization_pct: float, delay_days: Optional[float] = None) -> NodeStatus:
    if utilization_pct < CRITICAL_LOW_UTILIZATION or utilization_pct > CRITICAL_HIGH_UTILIZATION:
        return NodeStatus.CRITICAL
    if HEALTHY_MIN_UTILIZATION <= utilization_pct <= HEALTHY_MAX_UTILIZATION and not delay_days:
        return NodeStatus.HEALTHY
    return NodeStatus.WARNING


def classify_cause(node: SupplyChainNode) -> Optional[AnomalyCause]:
    """Most likely cause behind a non-Healthy node; None for Healthy nodes."""
    if node.status == NodeStatus.HEALTHY:
        return None
    util = node.utilization_pct
    if util < CRITICAL_LOW_UTILIZATION:
        return AnomalyCause.DEMAND_SHORTFALL
    if util > CRITICAL_HIGH_UTILIZATION:
        return AnomalyCause.CAPACITY_CONSTRAINT
    if node.has_active_delay:
        return AnomalyCause.LOGISTICS_DELAY
    if util < HEALTHY_MIN_UTILIZATION:
        return AnomalyCause.UNDERUTILIZATION
    return AnomalyCause.NEAR_CAPACITY


def chain_stage(node: SupplyChainNode) -> int:
    """Index of the node's first stage in the canonical chain."""
    return min(CHAIN_ORDER.index(t) for t in node.stages)


def _cause_label(node: SupplyChainNode) -> Optional[str]:
    cause = classify_cause(node)
    return cause.value if cause else None


def nodes_frame(nodes: Sequence[SupplyChainNode]) -> pd.DataFrame:
    """Flat per-node metrics table."""
    rows = [
        {
            "id": n.id,
            "name": n.name,
            "type": n.type.value,
            "stage": chain_stage(n),
            "status": n.status.value,
            "utilization_pct": n.utilization_pct,
            "capacity_units": n.capacity_units,
            "inventory_units": n.inventory_units,
            "delay_days": n.delay_days or 0.0,
            "temperature_c": n.temperature_c,
            "cause": _cause_label(n),
        }
        for n in nodes
    ]
    return pd.DataFrame(rows, columns=NODE_FRAME_COLUMNS)


def build_supply_chain_graph(nodes: Sequence[SupplyChainNode]) -> nx.DiGraph:
    """
    Directed chain: every node feeds every node of the next populated stage.

    Tiers are keyed by each node's first stage and only populated tiers are
    linked, so a Manufacturer+Warehouse node feeds whichever tier comes next.
    """
    G = nx.DiGraph()
    tiers: dict = {}
    for n in nodes:
        G.add_node(n.id, type=n.type.value, status=n.status.value)
        tiers.setdefault(chain_stage(n), []).append(n)

    ordered = sorted(tiers)
    for upstream_stage, downstream_stage in zip(ordered, ordered[1:]):
        for src in tiers[upstream_stage]:
            for dst in tiers[downstream_stage]:
                G.add_edge(src.id, dst.id)
    return G


def downstream_of(graph: nx.DiGraph, node_ids: Iterable[str]) -> List[str]:
    """Nodes strictly downstream of the given set, in graph insertion order."""
    sources: Set[str] = set(node_ids)
    reached: Set[str] = set()
    for node_id in sources:
        if node_id in graph:
            reached |= nx.descendants(graph, node_id)
    reached -= sources
    return [n for n in graph.nodes if n in reached]
