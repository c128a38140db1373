"""
Impact Agent
ESG assessment of the current network: environmental (transport emissions),
social (workforce strain) and governance (risk and certification coverage).
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from app.config import settings
from app.constants import (
    EMISSION_FACTORS,
    INDUSTRY_EMISSION_BASELINE,
    AgentName,
    EsgCategory,
    NodeStatus,
    NodeType,
    RiskProfile,
    ShippingMethod,
)
from app.schemas import (
    EnvironmentalMetrics,
    EsgRecommendation,
    FactoryDetails,
    GovernanceMetrics,
    ImpactPayload,
    NetworkSnapshot,
    ResultEnvelope,
    SocialMetrics,
    SupplierDetails,
    SupplyChainConfig,
)
from agents.envelope import build_envelope
from simulation.network_analytics import nodes_frame

logger = logging.getLogger(__name__)

LOW_CARBON_MODES = {ShippingMethod.RAIL, ShippingMethod.SEA}
HIGH_CARBON_MODES = {ShippingMethod.AIR, ShippingMethod.EXPRESS}

# Worst case: air only, chemicals baseline
MAX_CARBON_INTENSITY = max(EMISSION_FACTORS.values()) * max(INDUSTRY_EMISSION_BASELINE.values())

# Throughput → tonne-km: 10 kg per unit over an 800 km average haul
TONNES_PER_UNIT = 0.01
AVERAGE_HAUL_KM = 800.0

GOVERNANCE_RISK_BASE = {RiskProfile.LOW: 90.0, RiskProfile.MEDIUM: 75.0, RiskProfile.HIGH: 55.0}
OVERWORK_THRESHOLD = 85.0


def carbon_intensity_for(config: SupplyChainConfig) -> float:
    """kg CO2e per tonne-km: mean mode factor × industry baseline."""
    mean_factor = float(np.mean([EMISSION_FACTORS[m] for m in config.shipping_methods]))
    return mean_factor * INDUSTRY_EMISSION_BASELINE[config.industry]


def annual_footprint_tco2e(frame: pd.DataFrame, config: SupplyChainConfig) -> float:
    """Yearly transport emissions of the network at its current throughput."""
    annual_units = float((frame["capacity_units"] * frame["utilization_pct"] / 100.0).sum()) * 365
    tonne_km = annual_units * TONNES_PER_UNIT * AVERAGE_HAUL_KM
    return carbon_intensity_for(config) * tonne_km / 1000.0


@dataclass(frozen=True)
class EsgThresholds:
    environmental: float = 60.0
    social:        float = 70.0
    governance:    float = 70.0

    @classmethod
    def from_settings(cls) -> "EsgThresholds":
        return cls(
            environmental=settings.ESG_ENVIRONMENTAL_THRESHOLD,
            social=settings.ESG_SOCIAL_THRESHOLD,
            governance=settings.ESG_GOVERNANCE_THRESHOLD,
        )


class ImpactAgent:
    name = AgentName.IMPACT

    def __init__(self, thresholds: Optional[EsgThresholds] = None):
        self.thresholds = thresholds or EsgThresholds.from_settings()

    def assess_esg(self, snapshot: NetworkSnapshot) -> ResultEnvelope[ImpactPayload]:
        environmental = self._environmental(snapshot)
        social = self._social(snapshot)
        governance = self._governance(snapshot)
        recommendations = self._recommend(snapshot, environmental, social, governance)

        payload = ImpactPayload(
            environmental=environmental,
            social=social,
            governance=governance,
            recommendations=tuple(recommendations),
        )
        logger.info(
            f"Impact Agent: E={environmental.score} S={social.score} G={governance.score}, "
            f"{len(recommendations)} recommendations"
        )
        return build_envelope(self.name, snapshot, payload, confidence=0.9)

    # ── Environmental ────────────────────────────────────────────────────────

    @staticmethod
    def carbon_intensity(snapshot: NetworkSnapshot) -> float:
        return carbon_intensity_for(snapshot.configuration)

    def _environmental(self, snapshot: NetworkSnapshot) -> EnvironmentalMetrics:
        methods = snapshot.configuration.shipping_methods
        df = nodes_frame(snapshot.nodes)
        intensity = self.carbon_intensity(snapshot)
        footprint_t = annual_footprint_tco2e(df, snapshot.configuration)

        factor_total = sum(EMISSION_FACTORS[m] for m in methods)
        by_mode = {m: round(footprint_t * EMISSION_FACTORS[m] / factor_total, 1) for m in methods}

        avg_util = float(df["utilization_pct"].mean())
        return EnvironmentalMetrics(
            score=round(100.0 * (1.0 - min(1.0, intensity / MAX_CARBON_INTENSITY)), 1),
            carbon_intensity=round(intensity, 4),
            carbon_footprint_tco2e=round(footprint_t, 1),
            emissions_by_mode=by_mode,
            low_carbon_share_pct=round(100.0 * len(LOW_CARBON_MODES & set(methods)) / len(methods), 1),
            high_carbon_share_pct=round(100.0 * len(HIGH_CARBON_MODES & set(methods)) / len(methods), 1),
            energy_efficiency_pct=round(min(100.0, 75.0 + avg_util / 4.0), 1),
            renewable_energy_pct=30.0 if ShippingMethod.RAIL in methods else 15.0,
        )

    # ── Social ───────────────────────────────────────────────────────────────

    @staticmethod
    def _social(snapshot: NetworkSnapshot) -> SocialMetrics:
        df = nodes_frame(snapshot.nodes)
        n = len(df)
        avg_util = float(df["utilization_pct"].mean())
        overwork = float(
            ((df["utilization_pct"] - OVERWORK_THRESHOLD).clip(lower=0.0) / (100.0 - OVERWORK_THRESHOLD)).mean()
        )
        warning = int((df["status"] == NodeStatus.WARNING.value).sum())
        critical = int((df["status"] == NodeStatus.CRITICAL.value).sum())
        disruption = (warning + 2 * critical) / (2.0 * n)

        workforce = sum(
            node.type_details.workforce_size
            for node in snapshot.nodes
            if isinstance(node.type_details, FactoryDetails)
        )
        score = min(100.0, max(0.0, 100.0 - 40.0 * overwork - 60.0 * disruption))
        return SocialMetrics(
            score=round(score, 1),
            average_utilization_pct=round(avg_util, 1),
            overwork_index=round(overwork, 3),
            disruption_index=round(disruption, 3),
            workforce_size=workforce,
            nodes_over_90_pct=int((df["utilization_pct"] > 90.0).sum()),
        )

    # ── Governance ───────────────────────────────────────────────────────────

    @staticmethod
    def _governance(snapshot: NetworkSnapshot) -> GovernanceMetrics:
        risk = snapshot.configuration.risk_profile
        audited = [
            n for n in snapshot.nodes
            if isinstance(n.type_details, (SupplierDetails, FactoryDetails))
        ]
        uncertified = [n.id for n in audited if not n.type_details.certifications]
        coverage = 100.0 * (len(audited) - len(uncertified)) / len(audited) if audited else 100.0
        suppliers = sum(1 for n in snapshot.nodes if NodeType.SUPPLIER in n.stages)

        return GovernanceMetrics(
            score=round(0.6 * GOVERNANCE_RISK_BASE[risk] + 0.4 * coverage, 1),
            risk_profile=risk,
            certification_coverage_pct=round(coverage, 1),
            uncertified_node_ids=tuple(uncertified),
            supplier_audits_per_year=suppliers * 2,
        )

    # ── Recommendations ──────────────────────────────────────────────────────

    def _recommend(
        self,
        snapshot: NetworkSnapshot,
        env: EnvironmentalMetrics,
        social: SocialMetrics,
        gov: GovernanceMetrics,
    ) -> List[EsgRecommendation]:
        methods = snapshot.configuration.shipping_methods
        recs = []

        if env.score < self.thresholds.environmental:
            actions = []
            if ShippingMethod.RAIL not in methods:
                actions.append("Add rail transport for overland legs")
            if ShippingMethod.SEA not in methods:
                actions.append("Move non-urgent long-haul volume to sea freight")
            actions += [
                "Reserve air and express for time-critical orders",
                "Consolidate shipments to raise load factors",
            ]
            recs.append(EsgRecommendation(
                category=EsgCategory.ENVIRONMENTAL,
                score=env.score,
                threshold=self.thresholds.environmental,
                recommendation="Shift transport mix toward low-carbon modes",
                actions=tuple(actions),
            ))

        if social.score < self.thresholds.social:
            recs.append(EsgRecommendation(
                category=EsgCategory.SOCIAL,
                score=social.score,
                threshold=self.thresholds.social,
                recommendation="Reduce workforce strain at stressed nodes",
                actions=(
                    f"Rebalance shifts at the {social.nodes_over_90_pct} nodes above 90% utilization",
                    "Stand up disruption response rosters with rest guarantees",
                    "Survey staff at Critical nodes and act on findings",
                ),
            ))

        if gov.score < self.thresholds.governance:
            actions = [f"Raise supplier audits to {gov.supplier_audits_per_year * 2} per year"]
            if gov.uncertified_node_ids:
                actions.insert(0, f"Certify partners: {', '.join(gov.uncertified_node_ids)}")
            actions.append("Expand the certification programme to all tier-1 partners")
            recs.append(EsgRecommendation(
                category=EsgCategory.GOVERNANCE,
                score=gov.score,
                threshold=self.thresholds.governance,
                recommendation="Strengthen supplier governance and certification coverage",
                actions=tuple(actions),
            ))

        return recs
