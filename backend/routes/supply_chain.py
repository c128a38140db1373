"""
Supply-chain state routes
PUT  /api/v1/supply-chain/configuration  : validate, re-synthesise, replace the network
GET  /api/v1/supply-chain/configuration  : current effective configuration
GET  /api/v1/supply-chain/network        : nodes + stateVersion / tickCount
GET  /api/v1/supply-chain/nodes/{id}     : single node
GET  /api/v1/supply-chain/events         : recent sensor events
POST /api/v1/supply-chain/tick           : one manual live-update tick
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from app.errors import SupplyChainError
from app.schemas import (
    ConfigurationAccepted,
    NetworkStateView,
    SensorEventLog,
    SupplyChainConfig,
    SupplyChainNode,
    TickResult,
)
from routes.deps import get_network_store, http_error
from simulation.network_store import NetworkStateStore

router = APIRouter(prefix="/api/v1/supply-chain", tags=["Supply Chain"])
logger = logging.getLogger(__name__)


@router.put("/configuration", response_model=ConfigurationAccepted)
async def put_configuration(
    payload: Any = Body(...),
    seed: Optional[int] = Query(None, ge=0, description="Seed for reproducible synthesis"),
    store: NetworkStateStore = Depends(get_network_store),
):
    try:
        snapshot = store.set_configuration(payload, seed=seed)
    except SupplyChainError as e:
        raise http_error(e) from e
    return ConfigurationAccepted(
        accepted=True,
        state_version=snapshot.state_version,
        configuration=snapshot.configuration,
    )


@router.get("/configuration", response_model=SupplyChainConfig)
async def get_configuration(store: NetworkStateStore = Depends(get_network_store)):
    try:
        return store.get_configuration()
    except SupplyChainError as e:
        raise http_error(e) from e


@router.get("/network", response_model=NetworkStateView)
async def get_network(store: NetworkStateStore = Depends(get_network_store)):
    try:
        snapshot = store.get_state()
    except SupplyChainError as e:
        raise http_error(e) from e
    return NetworkStateView(
        nodes=snapshot.nodes,
        state_version=snapshot.state_version,
        tick_count=snapshot.tick_count,
        last_updated=snapshot.last_updated,
        count=len(snapshot.nodes),
    )


@router.get("/nodes/{node_id}", response_model=SupplyChainNode)
async def get_node(node_id: str, store: NetworkStateStore = Depends(get_network_store)):
    try:
        return store.get_node(node_id)
    except SupplyChainError as e:
        raise http_error(e) from e


@router.get("/events", response_model=SensorEventLog)
async def get_sensor_events(
    limit: int = Query(20, ge=1, le=100),
    store: NetworkStateStore = Depends(get_network_store),
):
    events = store.get_sensor_events(limit)
    return SensorEventLog(events=tuple(events), count=len(events))


@router.post("/tick", response_model=TickResult)
async def manual_tick(store: NetworkStateStore = Depends(get_network_store)):
    try:
        snapshot = store.tick()
    except SupplyChainError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.exception(f"Manual tick failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if snapshot is None:
        current = store.get_state() if store.has_state else None
        return TickResult(
            committed=False,
            state_version=current.state_version if current else 0,
            tick_count=current.tick_count if current else 0,
        )
    return TickResult(committed=True, state_version=snapshot.state_version, tick_count=snapshot.tick_count)
