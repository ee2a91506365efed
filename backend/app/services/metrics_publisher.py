"""
Dashboard state fan-out over Redis.

Every replaced dashboard state is written to a key (latest value for late
joiners) and published on a channel. Publishing is a side task: a Redis
outage is logged and never reaches the aggregator. A single writer task
always sends the newest pending state.
"""

import asyncio
import logging
from typing import Callable, Optional

import redis.asyncio as redis

from backend.app.schemas.metrics import DashboardState

logger = logging.getLogger("fleetops.publisher")


class MetricsPublisher:

    def __init__(self, client, key: str, channel: str):
        self.client = client
        self.key = key
        self.channel = channel
        self._latest: Optional[DashboardState] = None
        self._worker: Optional[asyncio.Task] = None
        self._remove_listener: Optional[Callable[[], None]] = None

    def attach(self, aggregator) -> None:
        self._remove_listener = aggregator.add_listener(self.schedule)

    def detach(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def schedule(self, state: DashboardState) -> Optional[asyncio.Task]:
        """Queue a state for publishing; replaces any state not yet sent."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        self._latest = state
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return self._worker

    async def _drain(self) -> None:
        while self._latest is not None:
            state, self._latest = self._latest, None
            await self.publish(state)

    async def publish(self, state: DashboardState) -> bool:
        payload = state.model_dump_json()
        try:
            await self.client.set(self.key, payload)
            await self.client.publish(self.channel, payload)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Could not publish dashboard state: %s", exc)
            return False
        return True

    async def aclose(self) -> None:
        self.detach()
        if self._worker is not None:
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None
