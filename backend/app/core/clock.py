"""
Shared tick clock.

One periodic asyncio task drives every time-based component (simulation
batch, playback session). Handlers receive the monotonic "now" of the tick
and run to completion before the next handler is called.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from backend.app.core.exceptions import ConfigurationError

logger = logging.getLogger("fleetops.clock")

TickHandler = Callable[[float], None]


class TickClock:
    """Periodic tick source with a strictly positive interval."""

    def __init__(self, interval_seconds: float, time_fn: Callable[[], float] = time.monotonic):
        if interval_seconds is None or interval_seconds <= 0:
            raise ConfigurationError(
                "Tick interval must be strictly positive",
                details={"interval_seconds": interval_seconds}
            )
        self.interval_seconds = interval_seconds
        self.time_fn = time_fn
        self._handlers: List[TickHandler] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_handler(self, handler: TickHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it."""
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    def tick(self, now: Optional[float] = None) -> float:
        """Run every handler once for the given instant."""
        now = self.time_fn() if now is None else now
        for handler in list(self._handlers):
            try:
                handler(now)
            except Exception:
                # one broken consumer must not stall the others
                logger.exception("Tick handler %r failed", handler)
        return now

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.tick()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting tick clock (interval=%ss)", self.interval_seconds)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Tick clock stopped")
