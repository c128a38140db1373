"""
Info Agent
Reads the current network snapshot and reports anomalous nodes, a status
summary and one recommendation per distinct cause.
"""
import logging
from typing import Dict, List

from app.constants import AgentName, AnomalyCause, NetworkHealth, NodeStatus, Priority
from app.schemas import (
    Anomaly,
    InfoPayload,
    InfoSummary,
    MetricSnapshot,
    NetworkSnapshot,
    Recommendation,
    ResultEnvelope,
    SupplyChainNode,
)
from agents.envelope import build_envelope
from simulation.network_analytics import classify_cause, nodes_frame

logger = logging.getLogger(__name__)

CAUSE_ACTIONS: Dict[AnomalyCause, str] = {
    AnomalyCause.DEMAND_SHORTFALL: "Rebalance inventory toward higher-demand nodes and revisit the demand forecast",
    AnomalyCause.CAPACITY_CONSTRAINT: "Add overflow capacity or reroute volume away from saturated nodes",
    AnomalyCause.LOGISTICS_DELAY: "Expedite delayed shipments and activate alternate carriers",
    AnomalyCause.UNDERUTILIZATION: "Consolidate throughput into under-used nodes",
    AnomalyCause.NEAR_CAPACITY: "Pre-book surge capacity before the nodes saturate",
}


def cause_hypothesis(node: SupplyChainNode, cause: AnomalyCause) -> str:
    util = node.utilization_pct
    if cause == AnomalyCause.DEMAND_SHORTFALL:
        return f"Utilization {util}% is below 40%: likely demand shortfall."
    if cause == AnomalyCause.CAPACITY_CONSTRAINT:
        return f"Utilization {util}% is above 98%: likely capacity constraint."
    if cause == AnomalyCause.LOGISTICS_DELAY:
        return f"Shipments are running {node.delay_days} days late: likely logistics disruption."
    if cause == AnomalyCause.UNDERUTILIZATION:
        return f"Utilization {util}% is below the 60% healthy floor: likely under-used capacity."
    return f"Utilization {util}% is above the 95% healthy ceiling: likely approaching capacity."


class InfoAgent:
    """Deterministic read of the snapshot; confidence is always 1.0."""

    name = AgentName.INFO

    def analyze(self, snapshot: NetworkSnapshot) -> ResultEnvelope[InfoPayload]:
        anomalies: List[Anomaly] = []
        by_cause: Dict[AnomalyCause, List[SupplyChainNode]] = {}

        for node in snapshot.nodes:
            cause = classify_cause(node)
            if cause is None:
                continue
            anomalies.append(Anomaly(
                node_id=node.id,
                node_name=node.name,
                node_type=node.type,
                severity=node.status,
                cause=cause,
                hypothesis=cause_hypothesis(node, cause),
                metrics=MetricSnapshot(
                    utilization_pct=node.utilization_pct,
                    capacity_units=node.capacity_units,
                    inventory_units=node.inventory_units,
                    temperature_c=node.temperature_c,
                    delay_days=node.delay_days,
                ),
            ))
            by_cause.setdefault(cause, []).append(node)

        payload = InfoPayload(
            anomalies=tuple(anomalies),
            summary=self._summarize(snapshot),
            recommendations=tuple(self._recommend(by_cause)),
        )
        logger.info(
            f"Info Agent: {len(anomalies)} anomalies, label={payload.summary.label.value} "
            f"(stateVersion={snapshot.state_version}, tick={snapshot.tick_count})"
        )
        return build_envelope(self.name, snapshot, payload, confidence=1.0)

    def _summarize(self, snapshot: NetworkSnapshot) -> InfoSummary:
        counts = nodes_frame(snapshot.nodes)["status"].value_counts()
        healthy = int(counts.get(NodeStatus.HEALTHY.value, 0))
        warning = int(counts.get(NodeStatus.WARNING.value, 0))
        critical = int(counts.get(NodeStatus.CRITICAL.value, 0))

        if critical:
            label = NetworkHealth.CRITICAL
        elif warning:
            label = NetworkHealth.DEGRADED
        else:
            label = NetworkHealth.HEALTHY

        return InfoSummary(
            total_nodes=len(snapshot.nodes),
            healthy=healthy,
            warning=warning,
            critical=critical,
            label=label,
            region=snapshot.configuration.region,
            industry=snapshot.configuration.industry,
        )

    @staticmethod
    def _recommend(by_cause: Dict[AnomalyCause, List[SupplyChainNode]]) -> List[Recommendation]:
        recs = []
        for cause, nodes in by_cause.items():
            has_critical = any(n.status == NodeStatus.CRITICAL for n in nodes)
            recs.append(Recommendation(
                cause=cause,
                action=CAUSE_ACTIONS[cause],
                node_ids=tuple(n.id for n in nodes),
                priority=Priority.HIGH if has_critical else Priority.MEDIUM,
            ))
        # High priority first; stable sort keeps first-seen order within a tier
        recs.sort(key=lambda r: r.priority != Priority.HIGH)
        return recs
