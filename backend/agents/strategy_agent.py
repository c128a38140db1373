"""
Strategy Agent
Scores a fixed catalogue of mitigation strategies against the network's
weaknesses and returns the best three.

Scoring basis (also used by the Scenario Agent for its mitigations)
─────────────────────────────────────────────────────────────────
  weakness severity  w ∈ [0,1] per Weakness, from the node metrics table
  benefit            = 100·w(addressed) + 25 if addressed is dominant
                       + 0.1·(100 − health score)
  cost penalty       = base cost (USD) / 25,000
  score              = benefit − cost penalty
Ordering: score descending, then estimated cost ascending.

Trade-off view
──────────────
  risk reduction     = clip(base · (0.5 + w), 0.1, 1)
  sustainability     = annual footprint (tCO2e) · carbon multiplier
  composite          = weighted sum of min-max normalised cost (lower is
                       better), risk reduction (higher) and sustainability
                       (lower). A prioritised objective weighs 0.6, the
                       others 0.2, normalised to sum to 1.
When any preference is set, ranking uses composite instead of score.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from app.config import settings
from app.constants import (
    EMISSION_FACTORS,
    HEALTHY_MAX_UTILIZATION,
    HEALTHY_MIN_UTILIZATION,
    SHIPPING_ORDER,
    AgentName,
    AnomalyCause,
    NodeStatus,
    NodeType,
    Priority,
    RiskProfile,
    ShippingMethod,
    Weakness,
)
from app.schemas import (
    ExpectedBenefit,
    HealthAssessment,
    NetworkSnapshot,
    ResultEnvelope,
    Strategy,
    StrategyPayload,
    StrategyPreferences,
    SupplyChainConfig,
    SupplyChainNode,
    TradeoffPoint,
    TradeoffWeights,
)
from agents.envelope import build_envelope, to_money
from agents.impact_agent import annual_footprint_tco2e
from simulation.network_analytics import classify_cause, nodes_frame

logger = logging.getLogger(__name__)

RISK_SCORES = {RiskProfile.LOW: 1.0, RiskProfile.MEDIUM: 0.6, RiskProfile.HIGH: 0.25}
RISK_EXPOSURE = {RiskProfile.LOW: 0.1, RiskProfile.MEDIUM: 0.4, RiskProfile.HIGH: 0.8}

CAUSE_WEAKNESS = {
    AnomalyCause.DEMAND_SHORTFALL: Weakness.INVENTORY_IMBALANCE,
    AnomalyCause.UNDERUTILIZATION: Weakness.INVENTORY_IMBALANCE,
    AnomalyCause.CAPACITY_CONSTRAINT: Weakness.CAPACITY_PRESSURE,
    AnomalyCause.NEAR_CAPACITY: Weakness.CAPACITY_PRESSURE,
    AnomalyCause.LOGISTICS_DELAY: Weakness.LOGISTICS_DELAY,
}

COST_PENALTY_PER_USD = 1.0 / 25_000
DOMINANT_BONUS = 25.0
PRIORITY_WEIGHT = 0.6
BASE_WEIGHT = 0.2
MIN_RISK_REDUCTION = 0.1


@dataclass(frozen=True)
class HealthScoreWeights:
    status:      float = 0.45
    utilization: float = 0.25
    shipping:    float = 0.15
    risk:        float = 0.15

    @classmethod
    def from_settings(cls) -> "HealthScoreWeights":
        return cls(
            status=settings.HEALTH_WEIGHT_STATUS,
            utilization=settings.HEALTH_WEIGHT_UTILIZATION,
            shipping=settings.HEALTH_WEIGHT_SHIPPING,
            risk=settings.HEALTH_WEIGHT_RISK,
        )


# ── Assessment ───────────────────────────────────────────────────────────────

@dataclass
class NetworkAssessment:
    """Everything a candidate's score function may look at."""
    config: SupplyChainConfig
    frame: pd.DataFrame
    health: HealthAssessment
    weaknesses: Dict[Weakness, float]
    dominant: Weakness
    critical_weaknesses: FrozenSet[Weakness]
    targets: Dict[Weakness, Tuple[str, ...]] = field(default_factory=dict)
    carbon_footprint_tco2e: float = 0.0

    @property
    def health_gap(self) -> float:
        return 100.0 - self.health.score


def _clip01(x: float) -> float:
    return float(min(1.0, max(0.0, x)))


def health_score(
    nodes: Sequence[SupplyChainNode], config: SupplyChainConfig, weights: HealthScoreWeights
) -> Tuple[float, float, float]:
    """(score 0-100, healthy fraction, average utilization)."""
    df = nodes_frame(nodes)
    n = max(len(df), 1)
    healthy = int((df["status"] == NodeStatus.HEALTHY.value).sum())
    warning = int((df["status"] == NodeStatus.WARNING.value).sum())
    avg_util = float(df["utilization_pct"].mean()) if len(df) else 0.0

    status_score = (healthy + 0.5 * warning) / n
    centre = (HEALTHY_MIN_UTILIZATION + HEALTHY_MAX_UTILIZATION) / 2
    half_band = (HEALTHY_MAX_UTILIZATION - HEALTHY_MIN_UTILIZATION) / 2 + 20.0
    util_score = 1.0 - min(1.0, abs(avg_util - centre) / half_band)
    shipping_score = min(1.0, len(config.shipping_methods) / 3.0)
    risk_score = RISK_SCORES[config.risk_profile]

    total_w = weights.status + weights.utilization + weights.shipping + weights.risk
    score = 100.0 * (
        weights.status * status_score
        + weights.utilization * util_score
        + weights.shipping * shipping_score
        + weights.risk * risk_score
    ) / total_w
    return round(score, 1), healthy / n, avg_util


def assess_network(
    nodes: Sequence[SupplyChainNode],
    config: SupplyChainConfig,
    weights: Optional[HealthScoreWeights] = None,
) -> NetworkAssessment:
    """Health score plus per-weakness severities over the given nodes."""
    weights = weights or HealthScoreWeights.from_settings()
    df = nodes_frame(nodes)
    score, healthy_frac, avg_util = health_score(nodes, config, weights)
    unhealthy_frac = 1.0 - healthy_frac

    is_supplier = np.array([NodeType.SUPPLIER in n.stages for n in nodes], dtype=bool)
    suppliers = df[is_supplier] if len(df) else df
    low_util = df[df["utilization_pct"] < HEALTHY_MIN_UTILIZATION]
    high_util = df[df["utilization_pct"] > 90.0]
    delayed = df[df["delay_days"] > 0]

    weaknesses: Dict[Weakness, float] = {}
    if len(suppliers):
        stressed = float((suppliers["status"] != NodeStatus.HEALTHY.value).mean())
        weaknesses[Weakness.SUPPLIER_CONCENTRATION] = _clip01(0.6 / len(suppliers) + 0.4 * stressed)
    else:
        weaknesses[Weakness.SUPPLIER_CONCENTRATION] = 0.0

    spread = float(df["utilization_pct"].std(ddof=0)) if len(df) > 1 else 0.0
    weaknesses[Weakness.INVENTORY_IMBALANCE] = _clip01(
        0.5 * min(1.0, spread / 25.0) + 0.5 * len(low_util) / max(len(df), 1)
    )
    missing = len(SHIPPING_ORDER) - len(config.shipping_methods)
    weaknesses[Weakness.SHIPPING_DIVERSITY] = _clip01(missing / (len(SHIPPING_ORDER) - 1))
    weaknesses[Weakness.CAPACITY_PRESSURE] = _clip01(len(high_util) / max(len(df), 1) * 1.5)
    mean_delay = float(delayed["delay_days"].mean()) if len(delayed) else 0.0
    weaknesses[Weakness.LOGISTICS_DELAY] = _clip01(
        0.5 * len(delayed) / max(len(df), 1) + 0.5 * min(1.0, mean_delay / 7.0)
    )
    weaknesses[Weakness.REGIONAL_RISK] = _clip01(
        RISK_EXPOSURE[config.risk_profile] * (0.5 + 0.5 * unhealthy_frac)
    )
    weaknesses = {k: round(v, 3) for k, v in weaknesses.items()}

    # Ties resolve to the earliest weakness in enum order
    dominant = max(Weakness, key=lambda w: (weaknesses[w], -list(Weakness).index(w)))

    critical = set()
    for n in nodes:
        if n.status != NodeStatus.CRITICAL:
            continue
        critical.add(CAUSE_WEAKNESS[classify_cause(n)])
        if NodeType.SUPPLIER in n.stages:
            critical.add(Weakness.SUPPLIER_CONCENTRATION)

    targets = {
        Weakness.SUPPLIER_CONCENTRATION: tuple(suppliers["id"]),
        Weakness.INVENTORY_IMBALANCE: tuple(low_util["id"]),
        Weakness.SHIPPING_DIVERSITY: (),
        Weakness.CAPACITY_PRESSURE: tuple(high_util["id"]),
        Weakness.LOGISTICS_DELAY: tuple(delayed["id"]),
        Weakness.REGIONAL_RISK: tuple(df.loc[df["status"] != NodeStatus.HEALTHY.value, "id"]),
    }

    health = HealthAssessment(
        score=score,
        healthy_fraction=round(healthy_frac, 3),
        average_utilization_pct=round(avg_util, 1),
        shipping_method_count=len(config.shipping_methods),
        risk_profile=config.risk_profile,
        weaknesses=weaknesses,
        dominant_weakness=dominant,
    )
    return NetworkAssessment(
        config=config,
        frame=df,
        health=health,
        weaknesses=weaknesses,
        dominant=dominant,
        critical_weaknesses=frozenset(critical),
        targets=targets,
        carbon_footprint_tco2e=annual_footprint_tco2e(df, config),
    )


# ── Candidate catalogue ──────────────────────────────────────────────────────

def _benefit(a: NetworkAssessment, weakness: Weakness, impact: float = 1.0) -> float:
    bonus = DOMINANT_BONUS if a.dominant == weakness and a.weaknesses[weakness] > 0 else 0.0
    return 100.0 * impact * a.weaknesses[weakness] + bonus + 0.1 * a.health_gap


def score_diversify_suppliers(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.SUPPLIER_CONCENTRATION)


def score_safety_stock(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.INVENTORY_IMBALANCE, impact=0.9)


def score_add_shipping_mode(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.SHIPPING_DIVERSITY)


def score_renegotiate_contracts(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.CAPACITY_PRESSURE, impact=0.8)


def score_regional_mitigation(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.REGIONAL_RISK, impact=1.1)


def score_expedite_logistics(a: NetworkAssessment) -> float:
    return _benefit(a, Weakness.LOGISTICS_DELAY)


def lowest_emission_missing_mode(methods: Sequence[ShippingMethod]) -> Optional[ShippingMethod]:
    missing = [m for m in SHIPPING_ORDER if m not in methods]
    if not missing:
        return None
    return min(missing, key=lambda m: EMISSION_FACTORS[m])


@dataclass(frozen=True)
class StrategyCandidate:
    name: str
    addresses: Weakness
    base_cost_usd: float
    timeframe: str
    description: str
    utilization_delta_pct: float
    availability_delta_pct: float
    score_fn: Callable[[NetworkAssessment], float]
    action_items: Tuple[str, ...]
    risk_reduction_base: float
    carbon_multiplier: float

    def actions_for(self, a: NetworkAssessment) -> Tuple[str, ...]:
        if self.addresses == Weakness.SHIPPING_DIVERSITY:
            mode = lowest_emission_missing_mode(a.config.shipping_methods)
            if mode is not None:
                return (f"Add {mode.value} capacity on the main lanes",) + self.action_items
        return self.action_items

    def risk_reduction(self, a: NetworkAssessment) -> float:
        scaled = self.risk_reduction_base * (0.5 + a.weaknesses[self.addresses])
        return round(min(1.0, max(MIN_RISK_REDUCTION, scaled)), 3)

    def sustainability_impact(self, a: NetworkAssessment) -> float:
        """Change in annual tCO2e; negative when the strategy cuts emissions."""
        multiplier = self.carbon_multiplier
        if self.addresses == Weakness.SHIPPING_DIVERSITY:
            methods = list(a.config.shipping_methods)
            mode = lowest_emission_missing_mode(methods)
            if mode is None:
                return 0.0
            before = float(np.mean([EMISSION_FACTORS[m] for m in methods]))
            after = float(np.mean([EMISSION_FACTORS[m] for m in methods + [mode]]))
            multiplier = after / before - 1.0
        return round(a.carbon_footprint_tco2e * multiplier, 1)


CATALOG: Tuple[StrategyCandidate, ...] = (
    StrategyCandidate(
        name="Diversify Suppliers",
        addresses=Weakness.SUPPLIER_CONCENTRATION,
        base_cost_usd=150_000,
        timeframe="2-4 weeks",
        description="Reduce single-source exposure by qualifying alternate suppliers",
        utilization_delta_pct=4.0,
        availability_delta_pct=12.0,
        score_fn=score_diversify_suppliers,
        action_items=(
            "Qualify two alternate suppliers per critical component",
            "Split volume across at least two sources",
            "Negotiate standby capacity agreements",
        ),
        risk_reduction_base=0.7,
        carbon_multiplier=0.08,
    ),
    StrategyCandidate(
        name="Increase Safety Stock",
        addresses=Weakness.INVENTORY_IMBALANCE,
        base_cost_usd=75_000,
        timeframe="1-2 weeks",
        description="Buffer demand swings with targeted safety stock",
        utilization_delta_pct=6.0,
        availability_delta_pct=8.0,
        score_fn=score_safety_stock,
        action_items=(
            "Raise safety stock at under-utilised nodes",
            "Rebalance inventory toward high-demand nodes",
            "Review reorder points weekly",
        ),
        risk_reduction_base=0.5,
        carbon_multiplier=0.03,
    ),
    StrategyCandidate(
        name="Add Shipping Mode",
        addresses=Weakness.SHIPPING_DIVERSITY,
        base_cost_usd=200_000,
        timeframe="3-6 weeks",
        description="Add a transport mode to create routing redundancy",
        utilization_delta_pct=3.0,
        availability_delta_pct=15.0,
        score_fn=score_add_shipping_mode,
        action_items=(
            "Contract a carrier for the new mode",
            "Define mode-switch triggers for disruptions",
        ),
        risk_reduction_base=0.6,
        carbon_multiplier=0,
    ),
    StrategyCandidate(
        name="Renegotiate Contracts",
        addresses=Weakness.CAPACITY_PRESSURE,
        base_cost_usd=50_000,
        timeframe="2-3 weeks",
        description="Secure flexible capacity clauses with partners",
        utilization_delta_pct=-5.0,
        availability_delta_pct=6.0,
        score_fn=score_renegotiate_contracts,
        action_items=(
            "Add surge-capacity clauses to partner contracts",
            "Introduce volume flexibility bands",
            "Align penalties with service levels",
        ),
        risk_reduction_base=0.4,
        carbon_multiplier=0,
    ),
    StrategyCandidate(
        name="Regional Risk Mitigation",
        addresses=Weakness.REGIONAL_RISK,
        base_cost_usd=350_000,
        timeframe="4-8 weeks",
        description="Spread exposure across regions and stand up contingency plans",
        utilization_delta_pct=2.0,
        availability_delta_pct=18.0,
        score_fn=score_regional_mitigation,
        action_items=(
            "Map single-region dependencies",
            "Pre-qualify an out-of-region backup node",
            "Run a quarterly regional disruption drill",
        ),
        risk_reduction_base=0.8,
        carbon_multiplier=0.1,
    ),
    StrategyCandidate(
        name="Expedite Logistics Recovery",
        addresses=Weakness.LOGISTICS_DELAY,
        base_cost_usd=90_000,
        timeframe="1-3 weeks",
        description="Clear shipment backlogs at delayed nodes",
        utilization_delta_pct=5.0,
        availability_delta_pct=10.0,
        score_fn=score_expedite_logistics,
        action_items=(
            "Prioritise backlog shipments at delayed nodes",
            "Activate alternate carriers on delayed lanes",
            "Track delay days daily until cleared",
        ),
        risk_reduction_base=0.5,
        carbon_multiplier=0.15,
    ),
)


def tradeoff_weights(preferences: Optional[StrategyPreferences] = None) -> TradeoffWeights:
    prefs = preferences or StrategyPreferences()
    raw = {
        "cost": PRIORITY_WEIGHT if prefs.prioritize_cost else BASE_WEIGHT,
        "risk": PRIORITY_WEIGHT if prefs.prioritize_risk else BASE_WEIGHT,
        "sustainability": PRIORITY_WEIGHT if prefs.prioritize_sustainability else BASE_WEIGHT,
    }
    total = sum(raw.values())
    return TradeoffWeights(**{k: round(v / total, 4) for k, v in raw.items()})


def _min_max(values: np.ndarray, higher_is_better: bool) -> np.ndarray:
    lo, hi = float(values.min()), float(values.max())
    if hi <= lo:
        return np.full(len(values), 0.5)
    scaled = (values - lo) / (hi - lo)
    return scaled if higher_is_better else 1.0 - scaled


@dataclass(frozen=True)
class CandidateEvaluation:
    candidate: StrategyCandidate
    score: float
    risk_reduction: float
    sustainability_impact_tco2e: float
    composite_score: float


def evaluate_candidates(
    a: NetworkAssessment,
    catalog: Sequence[StrategyCandidate] = CATALOG,
    weights: Optional[TradeoffWeights] = None,
) -> List[CandidateEvaluation]:
    """Score, risk reduction, emissions change and composite for every candidate, in catalogue order."""
    weights = weights or tradeoff_weights()
    scores = [round(c.score_fn(a) - c.base_cost_usd * COST_PENALTY_PER_USD, 2) for c in catalog]
    risks = np.array([c.risk_reduction(a) for c in catalog], dtype=float)
    carbon = np.array([c.sustainability_impact(a) for c in catalog], dtype=float)
    costs = np.array([c.base_cost_usd for c in catalog], dtype=float)

    composite = (
        weights.cost * _min_max(costs, higher_is_better=False)
        + weights.risk * _min_max(risks, higher_is_better=True)
        + weights.sustainability * _min_max(carbon, higher_is_better=False)
    )
    return [
        CandidateEvaluation(
            candidate=c,
            score=scores[i],
            risk_reduction=float(risks[i]),
            sustainability_impact_tco2e=float(carbon[i]),
            composite_score=round(float(np.clip(composite[i], 0.0, 1.0)), 4),
        )
        for i, c in enumerate(catalog)
    ]


def rank_strategies(
    a: NetworkAssessment,
    limit: int = 3,
    catalog: Sequence[StrategyCandidate] = CATALOG,
    preferences: Optional[StrategyPreferences] = None,
) -> List[Strategy]:
    """Evaluate every candidate and keep the best `limit`."""
    currency = a.config.currency
    evaluations = evaluate_candidates(a, catalog, tradeoff_weights(preferences))
    if preferences is not None and preferences.is_set:
        evaluations.sort(key=lambda e: (-e.composite_score, e.candidate.base_cost_usd))
    else:
        evaluations.sort(key=lambda e: (-e.score, e.candidate.base_cost_usd))

    strategies = []
    for e in evaluations[:limit]:
        c = e.candidate
        severity = a.weaknesses[c.addresses]
        if c.addresses in a.critical_weaknesses:
            priority = Priority.HIGH
        elif severity >= 0.4:
            priority = Priority.MEDIUM
        else:
            priority = Priority.LOW
        scale = 0.5 + severity
        strategies.append(Strategy(
            name=c.name,
            priority=priority,
            timeframe=c.timeframe,
            estimated_cost=to_money(c.base_cost_usd, currency),
            expected_benefit=ExpectedBenefit(
                description=c.description,
                utilization_delta_pct=round(c.utilization_delta_pct * scale, 1),
                availability_delta_pct=round(c.availability_delta_pct * scale, 1),
            ),
            action_items=c.actions_for(a),
            score=e.score,
            addresses=c.addresses,
            target_node_ids=a.targets.get(c.addresses, ()),
            risk_reduction=e.risk_reduction,
            sustainability_impact_tco2e=e.sustainability_impact_tco2e,
            composite_score=e.composite_score,
        ))
    return strategies


def tradeoff_points(
    a: NetworkAssessment, weights: TradeoffWeights, catalog: Sequence[StrategyCandidate] = CATALOG
) -> List[TradeoffPoint]:
    """Every candidate on the cost / risk / sustainability axes, for charting."""
    return [
        TradeoffPoint(
            strategy=e.candidate.name,
            estimated_cost=to_money(e.candidate.base_cost_usd, a.config.currency),
            risk_reduction=e.risk_reduction,
            sustainability_impact_tco2e=e.sustainability_impact_tco2e,
            composite_score=e.composite_score,
        )
        for e in evaluate_candidates(a, catalog, weights)
    ]


class StrategyAgent:
    name = AgentName.STRATEGY

    def __init__(self, weights: Optional[HealthScoreWeights] = None):
        self.weights = weights or HealthScoreWeights.from_settings()

    def recommend(
        self, snapshot: NetworkSnapshot, preferences: Optional[StrategyPreferences] = None
    ) -> ResultEnvelope[StrategyPayload]:
        assessment = assess_network(snapshot.nodes, snapshot.configuration, self.weights)
        weights = tradeoff_weights(preferences)
        strategies = rank_strategies(assessment, preferences=preferences)
        ranked_by = "preferences" if preferences is not None and preferences.is_set else "score"
        logger.info(
            f"Strategy Agent: health={assessment.health.score}, dominant={assessment.dominant.value}, "
            f"ranked by {ranked_by}, top={[s.name for s in strategies]}"
        )
        payload = StrategyPayload(
            health=assessment.health,
            strategies=tuple(strategies),
            weights=weights,
            ranked_by=ranked_by,
            tradeoffs=tuple(tradeoff_points(assessment, weights)),
        )
        # Heuristic ranking; confidence drops as the network gets less healthy
        confidence = 0.6 + 0.3 * assessment.health.score / 100.0
        return build_envelope(self.name, snapshot, payload, confidence)
