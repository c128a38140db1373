"""Shared dependencies: process-wide store, orchestrator and scheduler."""
from typing import Optional

from fastapi import HTTPException

from agents.orchestrator_agent import OrchestratorAgent
from app.errors import SupplyChainError
from simulation.live_updates import LiveUpdateScheduler
from simulation.network_store import NetworkStateStore

# Module-level singletons; tests swap them via app.dependency_overrides
_store: Optional[NetworkStateStore] = None
_orchestrator: Optional[OrchestratorAgent] = None
_scheduler: Optional[LiveUpdateScheduler] = None


def get_network_store() -> NetworkStateStore:
    global _store
    if _store is None:
        _store = NetworkStateStore()
    return _store


def get_orchestrator() -> OrchestratorAgent:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OrchestratorAgent(get_network_store())
    return _orchestrator


def get_scheduler() -> LiveUpdateScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = LiveUpdateScheduler(get_network_store())
    return _scheduler


def http_error(e: SupplyChainError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
