"""Periodic live-update loop driving NetworkStateStore.tick() on a fixed cadence."""
import asyncio
import logging
from typing import Optional

from app.config import settings
from app.errors import InternalInvariantViolation
from simulation.network_store import NetworkStateStore

logger = logging.getLogger(__name__)


class LiveUpdateScheduler:
    def __init__(self, store: NetworkStateStore, interval_seconds: Optional[float] = None):
        self.store = store
        self.interval_seconds = interval_seconds or settings.TICK_INTERVAL_SECONDS
        self._task: Optional[asyncio.Task] = None
        self.ticks_committed = 0
        self.ticks_failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="live-updates")
        logger.info(f"Live updates started (every {self.interval_seconds:.1f}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            f"Live updates stopped: {self.ticks_committed} ticks committed, {self.ticks_failed} discarded"
        )

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.run_once()

    def run_once(self) -> None:
        """One scheduled tick; any failure drops that tick only and the loop keeps running."""
        try:
            if self.store.tick() is not None:
                self.ticks_committed += 1
        except InternalInvariantViolation as e:
            self.ticks_failed += 1
            logger.error(f"Scheduled tick discarded: {e.message}")
        except Exception:
            self.ticks_failed += 1
            logger.exception("Scheduled tick failed unexpectedly")
