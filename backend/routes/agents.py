"""API routes for the orchestrator and the four analysis agents."""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from agents.orchestrator_agent import OrchestratorAgent
from app.errors import SupplyChainError
from app.schemas import (
    ImpactPayload,
    InfoPayload,
    OrchestratedRun,
    OrchestratorStatus,
    ResultEnvelope,
    ScenarioPayload,
    ScenarioRequest,
    StrategyPayload,
    StrategyPreferences,
)
from routes.deps import get_orchestrator, http_error

router = APIRouter(prefix="/api/v1/agents", tags=["Agents"])
logger = logging.getLogger(__name__)


@router.get("/status", response_model=OrchestratorStatus)
async def get_orchestrator_status(orch: OrchestratorAgent = Depends(get_orchestrator)):
    """Get current orchestrator and agent health status."""
    return orch.get_status()


@router.get("/decisions")
async def get_decision_log(
    limit: int = Query(20, ge=1, le=100),
    orch: OrchestratorAgent = Depends(get_orchestrator),
):
    decisions = orch.get_decisions(limit)
    return {"decisions": decisions, "count": len(decisions)}


@router.post("/info", response_model=ResultEnvelope[InfoPayload])
async def run_info_agent(orch: OrchestratorAgent = Depends(get_orchestrator)):
    """Anomalous nodes, status summary and per-cause recommendations."""
    try:
        return orch.analyze()
    except SupplyChainError as e:
        raise http_error(e) from e


@router.post("/scenario", response_model=ResultEnvelope[ScenarioPayload])
async def run_scenario_agent(
    request: ScenarioRequest,
    orch: OrchestratorAgent = Depends(get_orchestrator),
):
    """Simulate a disruption against the current network."""
    try:
        return orch.simulate(request)
    except SupplyChainError as e:
        raise http_error(e) from e


@router.post("/strategy", response_model=ResultEnvelope[StrategyPayload])
async def run_strategy_agent(
    preferences: Optional[StrategyPreferences] = Body(None),
    orch: OrchestratorAgent = Depends(get_orchestrator),
):
    """Top three mitigation strategies, optionally ranked by cost / risk / sustainability preference."""
    try:
        return orch.recommend(preferences)
    except SupplyChainError as e:
        raise http_error(e) from e


@router.post("/impact", response_model=ResultEnvelope[ImpactPayload])
async def run_impact_agent(orch: OrchestratorAgent = Depends(get_orchestrator)):
    """Environmental, social and governance assessment."""
    try:
        return orch.assess_esg()
    except SupplyChainError as e:
        raise http_error(e) from e


@router.post("/run/full", response_model=OrchestratedRun)
async def run_full_pipeline(
    scenario: Optional[ScenarioRequest] = Body(None),
    orch: OrchestratorAgent = Depends(get_orchestrator),
):
    """Run every agent against one snapshot and return all results together."""
    try:
        return await orch.run_full(scenario)
    except SupplyChainError as e:
        raise http_error(e) from e
