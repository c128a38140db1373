"""
Supply Chain Resilience Twin: FastAPI application
Configurable supply-chain network simulation with Info, Scenario, Strategy
and Impact (ESG) agents.
"""
import os
import sys
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Add backend directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import settings
from app.constants import DEFAULT_CONFIGURATION
from routes.agents import router as agents_router
from routes.deps import get_network_store, get_scheduler
from routes.health import router as health_router
from routes.supply_chain import router as supply_chain_router
from utils.logger import setup_logger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    store = get_network_store()
    if settings.BOOTSTRAP_DEFAULT_CONFIGURATION and not store.has_state:
        store.set_configuration(DEFAULT_CONFIGURATION)

    scheduler = get_scheduler()
    if settings.LIVE_UPDATES_ENABLED:
        scheduler.start()

    logger.info("All agents initialised and ready")
    yield
    await scheduler.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Synthesises a supply-chain network from a handful of business parameters, "
        "keeps it live with periodic perturbation, and runs anomaly, scenario, "
        "strategy and ESG agents over consistent snapshots of it."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(supply_chain_router)
app.include_router(agents_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
