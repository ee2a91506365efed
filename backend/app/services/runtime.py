"""
Fleet runtime.

Wires the live-state components together and owns their lifecycle:
collection sources feed the metrics aggregator; the tick clock drives the
simulation and playback controllers; side-services (geocoding, Redis
fan-out, simulation write-through) hang off the edges.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.core.clock import TickClock
from backend.app.core.config import Settings
from backend.app.core.reliability import CircuitBreaker
from backend.app.models.driver import Driver
from backend.app.models.driver_location import DriverLocation
from backend.app.models.load import Load
from backend.app.models.shipper import Shipper
from backend.app.schemas.playback import PlaybackLocation
from backend.app.schemas.tracking import LiveDriverResponse
from backend.app.services.cache import TTLCache, utcnow
from backend.app.services.geocoding import ReverseGeocoder
from backend.app.services.metrics_aggregator import DRIVERS, LOADS, SHIPPERS, MetricsAggregator
from backend.app.services.metrics_publisher import MetricsPublisher
from backend.app.services.playback import PlaybackController
from backend.app.services.position_writer import DriverPositionWriter
from backend.app.services.simulation import SimulationController
from backend.app.services.stream import CollectionSource, QueryCollectionSource

logger = logging.getLogger("fleetops.runtime")

UNKNOWN_DRIVER = "Unknown Driver"


def default_sources(session_factory: async_sessionmaker, poll_interval: float) -> Dict[str, CollectionSource]:
    """Live queries over the store tables."""
    return {
        LOADS: QueryCollectionSource(
            LOADS, session_factory, lambda: select(Load).order_by(Load.created_at.desc()), poll_interval
        ),
        DRIVERS: QueryCollectionSource(
            DRIVERS, session_factory, lambda: select(Driver).order_by(Driver.name), poll_interval
        ),
        SHIPPERS: QueryCollectionSource(
            SHIPPERS, session_factory, lambda: select(Shipper), poll_interval
        ),
    }


def build_geocoder(settings: Settings, clock: Callable[[], datetime] = utcnow) -> ReverseGeocoder:
    return ReverseGeocoder(
        base_url=settings.geocode_base_url,
        api_key=settings.ors_api_key,
        cache=TTLCache(ttl_seconds=settings.geocode_cache_ttl_seconds, clock=clock),
        timeout_seconds=settings.geocode_timeout_seconds,
        precision=settings.geocode_precision,
        placeholder=settings.geocode_placeholder,
        breaker=CircuitBreaker(
            failure_threshold=settings.geocode_failure_threshold,
            reset_timeout=settings.geocode_reset_timeout,
            name="geocoding",
        ),
    )


class FleetRuntime:

    def __init__(
        self,
        settings: Settings,
        session_factory: Optional[async_sessionmaker] = None,
        redis_client=None,
        sources: Optional[Dict[str, CollectionSource]] = None,
        geocoder: Optional[ReverseGeocoder] = None,
        time_fn: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.session_factory = session_factory

        self.aggregator = MetricsAggregator(
            default_fuel_efficiency=settings.default_fuel_efficiency,
            histogram_days=settings.histogram_days,
            recent_limit=settings.recent_loads_limit,
            clock=wall_clock,
        )
        self.simulation = SimulationController(time_fn=time_fn)
        self.playback = PlaybackController(speeds=settings.playback_speeds, time_fn=time_fn)

        self.clock = TickClock(settings.tick_interval_seconds, time_fn=time_fn)
        self.clock.add_handler(self.simulation.tick)
        self.clock.add_handler(self.playback.advance)

        self.geocoder = geocoder or build_geocoder(settings, wall_clock)

        if sources is None and session_factory is not None:
            sources = default_sources(session_factory, settings.snapshot_poll_interval_seconds)
        self.sources: Dict[str, CollectionSource] = sources or {}

        self.publisher: Optional[MetricsPublisher] = None
        if redis_client is not None and settings.publish_metrics_to_redis:
            self.publisher = MetricsPublisher(
                redis_client, settings.metrics_redis_key, settings.metrics_redis_channel
            )

        self.position_writer: Optional[DriverPositionWriter] = None
        if settings.simulation_write_through and session_factory is not None:
            self.position_writer = DriverPositionWriter(session_factory, self.simulation)

        self.started = False

    async def start(self) -> None:
        if self.started:
            return
        logger.info("Starting fleet runtime with sources %s", sorted(self.sources))
        if self.publisher is not None:
            self.publisher.attach(self.aggregator)
        for kind, source in self.sources.items():
            self.aggregator.attach(kind, source)
        self.clock.start()
        self.started = True

    async def stop(self) -> None:
        logger.info("Stopping fleet runtime")
        await self.clock.stop()
        self.aggregator.close()
        self.simulation.stop()
        self.playback.close()
        if self.position_writer is not None:
            await self.position_writer.aclose()
        if self.publisher is not None:
            await self.publisher.aclose()
        await self.geocoder.aclose()
        self.started = False

    def live_drivers(self, now: Optional[float] = None) -> List[LiveDriverResponse]:
        """Drivers for the map: simulated positions override stored ones."""
        result = []
        for driver in self.aggregator.drivers:
            simulated = self.simulation.position_for(driver.id, now)
            position = simulated or driver.position
            label = (
                self.geocoder.label_for(position.lat, position.lng)
                if position is not None else self.geocoder.placeholder
            )
            result.append(LiveDriverResponse(
                id=driver.id,
                name=driver.name or UNKNOWN_DRIVER,
                status=driver.status,
                position=position,
                simulated=simulated is not None,
                location_label=label,
                current_load_id=driver.current_load_id,
                eta=driver.eta,
                distance_remaining=driver.distance_remaining,
            ))
        return result

    async def load_breadcrumbs(self, driver_id: str) -> List[PlaybackLocation]:
        """Recorded GPS trail of a driver, oldest first."""
        if self.session_factory is None:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(DriverLocation)
                .where(DriverLocation.driver_id == driver_id)
                .order_by(DriverLocation.recorded_at)
            )
            return [PlaybackLocation.model_validate(row) for row in result.scalars().all()]
