# scheduler.py  ──  fixed-cadence recompute-and-push loop
# Every tick recomputes all customer and agent views from scratch; nothing
# is carried over between ticks.

import asyncio
import logging
from typing import Optional

from broker import Broker

logger = logging.getLogger(__name__)


class TickScheduler:

    def __init__(self, broker: Broker, interval_seconds: float):
        self.broker = broker
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run())
        logger.info("Tick scheduler started, interval %.2fs", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tick scheduler stopped")

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.broker.tick()
            except Exception:
                # keep ticking
                logger.exception("Tick failed")
