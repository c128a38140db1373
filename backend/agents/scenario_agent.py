"""
Scenario Agent
Simulates a disruption against the current snapshot and reports its
impact, a five-phase timeline and ranked mitigations.

Impact model
────────────
  throughput      = Σ capacity · max(util, 10%)           (units/day, affected nodes)
  stress          = cost_factor · severity_mult · penalty · redundancy
  loss share      = 1 − exp(−0.05 · stress)
  revenue impact  = throughput · unit_revenue · duration · loss share
  delay           = duration · (1 − exp(−0.25 · time_factor · severity_mult · penalty · redundancy))
  penalty         = 1 + 0.3·warning share + 0.6·critical share     (compounding risk)
  redundancy      = max(0.4, 1 − 0.12·(shipping methods − 1))      (redundancy discount)
Every term is non-decreasing in severity and duration.

The headline figures use intensity 1. The p10/p90 band repeats revenue and
delay with intensity drawn uniformly from [0.7, 1.3], from a Generator
seeded by (stateVersion, tickCount) so one snapshot always yields one band.
"""
import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Iterable, List, Optional

import numpy as np

from app.config import settings
from app.constants import (
    INDUSTRY_UNIT_REVENUE,
    SCENARIO_FACTORS,
    SEVERITY_MULTIPLIERS,
    AgentName,
    NodeStatus,
    ScenarioPhase,
    ScenarioType,
    Severity,
)
from app.errors import InvalidDuration, InvalidScenarioRequest, UnknownScenarioType
from app.schemas import (
    MitigationSuggestion,
    NetworkSnapshot,
    ResultEnvelope,
    ImpactUncertainty,
    ScenarioImpact,
    ScenarioPayload,
    ScenarioRequest,
    TimelineEntry,
)
from agents.envelope import build_envelope, to_money
from agents.strategy_agent import HealthScoreWeights, assess_network, rank_strategies
from simulation.network_analytics import build_supply_chain_graph, downstream_of, nodes_frame

logger = logging.getLogger(__name__)

PHASE_FRACTIONS = (
    (ScenarioPhase.ONSET, 0.0),
    (ScenarioPhase.DETECTION, 0.1),
    (ScenarioPhase.ESCALATION, 0.3),
    (ScenarioPhase.RESPONSE, 0.6),
    (ScenarioPhase.RECOVERY, 1.0),
)

SCENARIO_LABELS = {
    ScenarioType.PORT_CLOSURE: "port closure",
    ScenarioType.SUPPLIER_DISRUPTION: "supplier disruption",
    ScenarioType.DEMAND_SPIKE: "demand spike",
    ScenarioType.WEATHER_EVENT: "severe weather event",
    ScenarioType.TRANSPORTATION_DELAY: "transportation delay",
    ScenarioType.QUALITY_ISSUE: "quality issue",
    ScenarioType.CYBER_ATTACK: "cyber attack",
    ScenarioType.LABOR_SHORTAGE: "labor shortage",
    ScenarioType.GEOPOLITICAL: "geopolitical disruption",
}

MIN_THROUGHPUT_UTILIZATION = 10.0
REVENUE_LOSS_RATE = 0.05
DELAY_RATE = 0.25


@dataclass(frozen=True)
class ScenarioPolicy:
    warning_penalty:           float = 0.30
    critical_penalty:          float = 0.60
    redundancy_discount:       float = 0.12
    min_redundancy_multiplier: float = 0.40
    uncertainty_iterations:    int = 500
    intensity_low:             float = 0.7
    intensity_high:            float = 1.3

    @classmethod
    def from_settings(cls) -> "ScenarioPolicy":
        return cls(
            warning_penalty=settings.SCENARIO_WARNING_PENALTY,
            critical_penalty=settings.SCENARIO_CRITICAL_PENALTY,
            redundancy_discount=settings.SCENARIO_REDUNDANCY_DISCOUNT,
            min_redundancy_multiplier=settings.SCENARIO_MIN_REDUNDANCY_MULTIPLIER,
            uncertainty_iterations=settings.SCENARIO_UNCERTAINTY_ITERATIONS,
            intensity_low=settings.SCENARIO_INTENSITY_LOW,
            intensity_high=settings.SCENARIO_INTENSITY_HIGH,
        )


class ScenarioAgent:
    name = AgentName.SCENARIO

    def __init__(
        self,
        policy: Optional[ScenarioPolicy] = None,
        weights: Optional[HealthScoreWeights] = None,
    ):
        self.policy = policy or ScenarioPolicy.from_settings()
        self.weights = weights or HealthScoreWeights.from_settings()

    # ── Public interface ─────────────────────────────────────────────────────

    def run(self, snapshot: NetworkSnapshot, request: ScenarioRequest) -> ResultEnvelope[ScenarioPayload]:
        return self.simulate(
            snapshot,
            scenario_type=request.scenario_type,
            severity=request.severity,
            duration_days=request.duration_days,
            affected_node_ids=request.affected_node_ids,
        )

    def simulate(
        self,
        snapshot: NetworkSnapshot,
        scenario_type: Any,
        severity: Any = Severity.MEDIUM,
        duration_days: Any = 7,
        affected_node_ids: Optional[Iterable[str]] = None,
    ) -> ResultEnvelope[ScenarioPayload]:
        stype = self._parse_type(scenario_type)
        sev = self._parse_severity(severity)
        duration = self._parse_duration(duration_days)
        affected_ids = self._resolve_affected(snapshot, affected_node_ids)

        impact = self._impact(snapshot, stype, sev, duration, affected_ids)
        timeline = self._timeline(stype, duration)

        affected_nodes = [n for n in snapshot.nodes if n.id in set(affected_ids)]
        assessment = assess_network(affected_nodes, snapshot.configuration, self.weights)
        mitigations = [
            MitigationSuggestion(
                rank=i + 1,
                strategy=s.name,
                score=s.score,
                estimated_cost=s.estimated_cost,
                priority=s.priority,
                rationale=f"Addresses {s.addresses.value.replace('_', ' ')} "
                          f"(severity {assessment.weaknesses[s.addresses]:.2f}) across affected nodes",
            )
            for i, s in enumerate(rank_strategies(assessment))
        ]

        payload = ScenarioPayload(
            scenario_type=stype,
            severity=sev,
            duration_days=duration,
            impact=impact,
            timeline=tuple(timeline),
            mitigations=tuple(mitigations),
        )
        logger.info(
            f"Scenario Agent: {stype.value}/{sev.value} for {duration}d over {len(affected_ids)} nodes: "
            f"revenue impact {impact.revenue_impact.amount} {impact.revenue_impact.currency.value}, "
            f"delay {impact.delivery_delay_days}d"
        )
        return build_envelope(self.name, snapshot, payload, self._confidence(sev, duration))

    # ── Request validation ───────────────────────────────────────────────────

    @staticmethod
    def _parse_type(value: Any) -> ScenarioType:
        try:
            return ScenarioType(value)
        except ValueError:
            raise UnknownScenarioType(value, supported=[t.value for t in ScenarioType]) from None

    @staticmethod
    def _parse_severity(value: Any) -> Severity:
        try:
            return Severity(value)
        except ValueError:
            raise InvalidScenarioRequest(
                f"Unknown severity: {value!r}",
                details={"supported": [s.value for s in Severity]},
            ) from None

    @staticmethod
    def _parse_duration(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidDuration(value)
        duration = float(value)
        if not math.isfinite(duration) or duration <= 0:
            raise InvalidDuration(value)
        return duration

    @staticmethod
    def _resolve_affected(snapshot: NetworkSnapshot, ids: Optional[Iterable[str]]) -> List[str]:
        requested = list(dict.fromkeys(ids or []))
        if not requested:
            return snapshot.node_ids
        known = set(snapshot.node_ids)
        unknown = [i for i in requested if i not in known]
        if unknown:
            raise InvalidScenarioRequest(
                f"Unknown affected node ids: {unknown}", details={"unknown": unknown}
            )
        return requested

    # ── Impact model ─────────────────────────────────────────────────────────

    def _impact(
        self,
        snapshot: NetworkSnapshot,
        stype: ScenarioType,
        sev: Severity,
        duration: float,
        affected_ids: List[str],
    ) -> ScenarioImpact:
        config = snapshot.configuration
        df = nodes_frame(snapshot.nodes)
        affected = df[df["id"].isin(affected_ids)]
        n_affected = len(affected)

        cost_f, time_f, inventory_f = SCENARIO_FACTORS[stype]
        sev_mult = SEVERITY_MULTIPLIERS[sev]

        warn_share = float((affected["status"] == NodeStatus.WARNING.value).mean())
        crit_share = float((affected["status"] == NodeStatus.CRITICAL.value).mean())
        penalty = 1.0 + self.policy.warning_penalty * warn_share + self.policy.critical_penalty * crit_share
        redundancy = max(
            self.policy.min_redundancy_multiplier,
            1.0 - self.policy.redundancy_discount * (len(config.shipping_methods) - 1),
        )

        throughput = float(
            (affected["capacity_units"] * affected["utilization_pct"].clip(lower=MIN_THROUGHPUT_UTILIZATION) / 100.0).sum()
        )
        stress = cost_f * sev_mult * penalty * redundancy
        loss_share = 1.0 - math.exp(-REVENUE_LOSS_RATE * stress)
        revenue_scale = throughput * INDUSTRY_UNIT_REVENUE[config.industry] * duration
        revenue_usd = revenue_scale * loss_share
        cost_usd = revenue_usd * 0.3 * time_f / (time_f + 1.0)

        delay_rate = DELAY_RATE * time_f * sev_mult * penalty * redundancy
        delay = duration * (1.0 - math.exp(-delay_rate))
        affected_share = n_affected / max(len(df), 1)
        satisfaction = min(100.0, max(0.0, 100.0 - 1.5 * delay - 10.0 * affected_share * sev_mult))

        inventory_hit = float(affected["inventory_units"].sum()) * min(1.0, 0.1 * inventory_f * sev_mult)

        uncertainty = self._uncertainty(snapshot, revenue_scale, stress, duration, delay_rate)

        graph = build_supply_chain_graph(snapshot.nodes)
        downstream = downstream_of(graph, affected_ids)

        return ScenarioImpact(
            revenue_impact=to_money(revenue_usd, config.currency),
            cost_increase=to_money(cost_usd, config.currency),
            delivery_delay_days=round(delay, 2),
            customer_satisfaction_pct=round(satisfaction, 1),
            affected_node_count=n_affected,
            affected_node_ids=tuple(affected_ids),
            downstream_node_ids=tuple(downstream),
            inventory_impact_units=int(round(inventory_hit)),
            compounding_penalty=round(penalty, 3),
            redundancy_multiplier=round(redundancy, 3),
            uncertainty=uncertainty,
        )

    def _uncertainty(
        self,
        snapshot: NetworkSnapshot,
        revenue_scale: float,
        stress: float,
        duration: float,
        delay_rate: float,
    ) -> ImpactUncertainty:
        policy = self.policy
        rng = np.random.default_rng([snapshot.state_version, snapshot.tick_count])
        intensity = rng.uniform(policy.intensity_low, policy.intensity_high, policy.uncertainty_iterations)

        revenue = revenue_scale * (1.0 - np.exp(-REVENUE_LOSS_RATE * stress * intensity))
        delay = duration * (1.0 - np.exp(-delay_rate * intensity))
        rev_p10, rev_p90 = np.percentile(revenue, [10, 90])
        delay_p10, delay_p90 = np.percentile(delay, [10, 90])

        currency = snapshot.configuration.currency
        return ImpactUncertainty(
            iterations=policy.uncertainty_iterations,
            revenue_impact_p10=to_money(float(rev_p10), currency),
            revenue_impact_p90=to_money(float(rev_p90), currency),
            delivery_delay_p10_days=round(float(delay_p10), 2),
            delivery_delay_p90_days=round(float(delay_p90), 2),
        )

    @staticmethod
    def _timeline(stype: ScenarioType, duration: float) -> List[TimelineEntry]:
        label = SCENARIO_LABELS[stype]
        descriptions = {
            ScenarioPhase.ONSET: f"The {label} begins and first shipments are held",
            ScenarioPhase.DETECTION: f"Monitoring flags the {label} and its affected nodes",
            ScenarioPhase.ESCALATION: "Backlogs peak and downstream nodes feel the shortfall",
            ScenarioPhase.RESPONSE: "Mitigations take effect and volume is rerouted",
            ScenarioPhase.RECOVERY: "Flows return to baseline and backlogs clear",
        }
        return [
            TimelineEntry(phase=phase, day_offset=round(duration * frac, 1), description=descriptions[phase])
            for phase, frac in PHASE_FRACTIONS
        ]

    @staticmethod
    def _confidence(sev: Severity, duration: float) -> float:
        """Longer and harsher scenarios are extrapolated further from current state."""
        sev_rank = list(Severity).index(sev)
        return min(0.95, max(0.5, 0.95 - 0.05 * sev_rank - min(0.2, duration / 365.0)))
