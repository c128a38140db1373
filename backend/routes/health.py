"""Health check routes."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.config import settings
from routes.deps import get_network_store
from simulation.network_store import NetworkStateStore

router = APIRouter(prefix="/api/v1", tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(store: NetworkStateStore = Depends(get_network_store)):
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "networkConfigured": store.has_state,
        "stateVersion": store.state_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
