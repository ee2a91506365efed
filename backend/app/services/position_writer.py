"""
Simulation write-through.

Mirrors simulated driver positions into the drivers table so every viewer
of the store sees the demo motion. Ticks are written one at a time in the
order they were produced; writes from a superseded batch are dropped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.models.driver import Driver
from backend.app.schemas.simulation import SimulatedPosition

logger = logging.getLogger("fleetops.simulation.writer")

Tick = Tuple[int, List[SimulatedPosition]]


class DriverPositionWriter:

    def __init__(self, session_factory: async_sessionmaker, controller):
        self.session_factory = session_factory
        self.controller = controller
        self._queue: "asyncio.Queue[Tick]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._remove_listener = controller.add_listener(self.on_positions)

    def on_positions(self, generation: int, positions: List[SimulatedPosition]) -> None:
        if not positions:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._queue.put_nowait((generation, positions))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._consume())

    async def _consume(self) -> None:
        while True:
            generation, positions = await self._queue.get()
            try:
                await self.write(generation, positions)
            except Exception:
                logger.exception("Simulated position write failed")
            finally:
                self._queue.task_done()

    async def write(self, generation: int, positions: List[SimulatedPosition]) -> int:
        if not self.controller.is_current(generation):
            return 0
        now = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session:
                for sample in positions:
                    await session.execute(
                        update(Driver)
                        .where(Driver.id == sample.entity_id)
                        .values(latitude=sample.position.lat, longitude=sample.position.lng, last_update=now)
                    )
                # stop() may have landed while the statements ran
                if not self.controller.is_current(generation):
                    await session.rollback()
                    return 0
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error writing simulated positions: %s", exc)
            return 0
        return len(positions)

    async def aclose(self) -> None:
        """Stop listening and let queued writes finish."""
        self._remove_listener()
        if self._worker is None:
            return
        if not self._worker.done():
            await self._queue.join()
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
