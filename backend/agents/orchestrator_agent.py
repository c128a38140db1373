"""
Orchestrator Agent: master coordinator
Takes one snapshot from the Network State Store and hands it to the Info,
Scenario, Strategy and Impact agents, so every result in a run refers to
the same stateVersion / tickCount.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from agents.impact_agent import ImpactAgent
from agents.info_agent import InfoAgent
from agents.scenario_agent import ScenarioAgent
from agents.strategy_agent import StrategyAgent
from app.constants import AgentName
from app.errors import SupplyChainError
from app.schemas import (
    ImpactPayload,
    InfoPayload,
    NetworkSnapshot,
    OrchestratedRun,
    OrchestratorStatus,
    ResultEnvelope,
    ScenarioPayload,
    ScenarioRequest,
    StrategyPayload,
    StrategyPreferences,
)
from simulation.network_store import NetworkStateStore

logger = logging.getLogger(__name__)

DECISION_LOG_SIZE = 100


class OrchestratorAgent:
    """
    Master coordinator for the supply-chain agents.

    Responsibilities:
    - Read exactly one snapshot per request and share it between agents
    - Run the full Info → Strategy → Impact (→ Scenario) pipeline
    - Log every decision for audit trail
    """

    def __init__(
        self,
        store: NetworkStateStore,
        info_agent: Optional[InfoAgent] = None,
        scenario_agent: Optional[ScenarioAgent] = None,
        strategy_agent: Optional[StrategyAgent] = None,
        impact_agent: Optional[ImpactAgent] = None,
    ):
        self.store = store
        self.info_agent = info_agent or InfoAgent()
        self.scenario_agent = scenario_agent or ScenarioAgent()
        self.strategy_agent = strategy_agent or StrategyAgent()
        self.impact_agent = impact_agent or ImpactAgent()

        self._memory: Dict[str, Any] = {
            "last_run_at": None,
            "last_state_version": None,
            "last_network_label": None,
            "runs_completed": 0,
            "historical_decisions": [],
        }

    # ── Memory ────────────────────────────────────────────────────────────────

    def _store_decision(self, agent: str, action: str, outcome: str, state_version: Optional[int] = None):
        self._memory["historical_decisions"].append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "agent": agent,
            "action": action,
            "outcome": outcome,
            "state_version": state_version,
        })
        self._memory["historical_decisions"] = self._memory["historical_decisions"][-DECISION_LOG_SIZE:]

    def get_decisions(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        decisions = list(self._memory["historical_decisions"])
        if limit is not None:
            decisions = decisions[-limit:] if limit > 0 else []
        return decisions

    def _invoke(self, agent: AgentName, action: str, fn: Callable, snapshot: NetworkSnapshot, *args):
        try:
            envelope = fn(snapshot, *args)
        except SupplyChainError as e:
            self._store_decision(agent.value, action, f"rejected: {e.code}", snapshot.state_version)
            logger.warning(f"{agent.value} rejected request: {e.message}")
            raise
        self._store_decision(agent.value, action, "completed", snapshot.state_version)
        return envelope

    # ── Single-agent entry points ─────────────────────────────────────────────

    def analyze(self) -> ResultEnvelope[InfoPayload]:
        snapshot = self.store.get_state()
        envelope = self._invoke(AgentName.INFO, "analyze", self.info_agent.analyze, snapshot)
        self._memory["last_network_label"] = envelope.payload.summary.label.value
        return envelope

    def simulate(self, request: ScenarioRequest) -> ResultEnvelope[ScenarioPayload]:
        snapshot = self.store.get_state()
        return self._invoke(AgentName.SCENARIO, "simulate", self.scenario_agent.run, snapshot, request)

    def recommend(self, preferences: Optional[StrategyPreferences] = None) -> ResultEnvelope[StrategyPayload]:
        snapshot = self.store.get_state()
        return self._invoke(
            AgentName.STRATEGY, "recommend", self.strategy_agent.recommend, snapshot, preferences
        )

    def assess_esg(self) -> ResultEnvelope[ImpactPayload]:
        snapshot = self.store.get_state()
        return self._invoke(AgentName.IMPACT, "assess_esg", self.impact_agent.assess_esg, snapshot)

    # ── Full pipeline ─────────────────────────────────────────────────────────

    async def run_full(self, scenario: Optional[ScenarioRequest] = None) -> OrchestratedRun:
        """
        Run every agent against one snapshot. A failing agent fails the whole
        run; no partial bundle is returned.
        """
        snapshot = self.store.get_state()
        started_at = datetime.now(timezone.utc)
        logger.info(
            f"Orchestrator started (stateVersion={snapshot.state_version}, tick={snapshot.tick_count})"
        )

        info = self._invoke(AgentName.INFO, "analyze", self.info_agent.analyze, snapshot)
        strategy = self._invoke(AgentName.STRATEGY, "recommend", self.strategy_agent.recommend, snapshot)
        impact = self._invoke(AgentName.IMPACT, "assess_esg", self.impact_agent.assess_esg, snapshot)
        scenario_result = None
        if scenario is not None:
            scenario_result = self._invoke(
                AgentName.SCENARIO, "simulate", self.scenario_agent.run, snapshot, scenario
            )

        completed_at = datetime.now(timezone.utc)
        duration_s = (completed_at - started_at).total_seconds()

        self._memory["last_run_at"] = completed_at
        self._memory["last_state_version"] = snapshot.state_version
        self._memory["last_network_label"] = info.payload.summary.label.value
        self._memory["runs_completed"] += 1
        self._store_decision(
            AgentName.ORCHESTRATOR.value,
            "run_full",
            f"network {info.payload.summary.label.value}; top strategy "
            f"{strategy.payload.strategies[0].name if strategy.payload.strategies else 'none'}",
            snapshot.state_version,
        )
        logger.info(f"Orchestrator completed in {duration_s:.3f}s (stateVersion={snapshot.state_version})")

        return OrchestratedRun(
            state_version=snapshot.state_version,
            tick_count=snapshot.tick_count,
            started_at=started_at,
            completed_at=completed_at,
            info=info,
            strategy=strategy,
            impact=impact,
            scenario=scenario_result,
        )

    def get_status(self) -> OrchestratorStatus:
        """Return current orchestrator health / status."""
        label = self._memory["last_network_label"]
        return OrchestratorStatus(
            status="running" if self.store.has_state else "awaiting_configuration",
            active_agents=[a.value for a in AgentName if a != AgentName.ORCHESTRATOR],
            last_run_at=self._memory["last_run_at"],
            runs_completed=self._memory["runs_completed"],
            decisions_logged=len(self._memory["historical_decisions"]),
            state_version=self.store.state_version or None,
            system_health=label.lower() if label else "unknown",
        )
