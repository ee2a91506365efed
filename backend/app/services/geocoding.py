"""
Reverse geocoding side-service.

Turns a driver's coordinates into a region label for the map panel.
Lookups are fire-and-forget tasks with a timeout and a circuit breaker;
results are cached per rounded (lat, lng) pair. Nothing here ever raises
into the metrics or motion code: every failure resolves to a placeholder.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Tuple

import httpx

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.services.cache import TTLCache

logger = logging.getLogger("fleetops.geocoding")

CoordKey = Tuple[float, float]

# Administrative levels, most specific first
LABEL_PROPERTIES = ("region", "state", "macroregion", "label")


def coord_key(lat: float, lng: float, precision: int = 2) -> CoordKey:
    """Cache key: coordinates rounded to ``precision`` decimals."""
    return (round(lat, precision), round(lng, precision))


def extract_label(payload: Dict[str, Any]) -> Optional[str]:
    """Pick the region label out of a GeoJSON reverse-geocode response."""
    features = payload.get("features") or []
    if not features:
        return None
    properties = features[0].get("properties") or {}
    for name in LABEL_PROPERTIES:
        value = properties.get(name)
        if value:
            return str(value)
    return None


class ReverseGeocoder:
    """
    Cached reverse geocoder over an OpenRouteService-compatible endpoint.

    label_for() never waits on the network: it answers from the cache or
    with the placeholder, and schedules a background lookup on a miss.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        cache: Optional[TTLCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 5.0,
        precision: int = 2,
        placeholder: str = "Location unavailable",
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=3600)
        self.timeout_seconds = timeout_seconds
        self.precision = precision
        self.placeholder = placeholder
        self.breaker = breaker or CircuitBreaker(failure_threshold=3, reset_timeout=30, name="geocoding")
        self._client = client
        self._owns_client = client is None
        self._pending: Dict[CoordKey, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    def cached_label(self, lat: float, lng: float) -> Optional[str]:
        return self.cache.get(coord_key(lat, lng, self.precision))

    def label_for(self, lat: float, lng: float) -> str:
        label = self.cached_label(lat, lng)
        if label is not None:
            return label
        self.schedule(lat, lng)
        return self.placeholder

    def schedule(self, lat: float, lng: float) -> Optional[asyncio.Task]:
        """Start a background lookup unless one for the same key is in flight."""
        key = coord_key(lat, lng, self.precision)
        pending = self._pending.get(key)
        if pending is not None and not pending.done():
            return pending
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        task = loop.create_task(self.lookup(lat, lng))
        self._pending[key] = task
        self._tasks.add(task)
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    def _forget(self, key: CoordKey, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._pending.get(key) is task:
            del self._pending[key]

    async def lookup(self, lat: float, lng: float) -> str:
        """Resolve a label, waiting for the provider if needed."""
        key = coord_key(lat, lng, self.precision)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        if not self.api_key:
            logger.debug("No geocoding API key configured, using placeholder")
            return self.placeholder

        try:
            label = await self.breaker.call(self._fetch_with_timeout, key[0], key[1])
        except CircuitOpenError:
            logger.debug("Geocoding circuit open, skipping %s", key)
            return self.placeholder
        except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Reverse geocode failed for %s: %s", key, exc)
            return self.placeholder

        if label is None:
            logger.info("No region found for %s", key)
            return self.placeholder
        self.cache.set(key, label)
        return label

    async def _fetch_with_timeout(self, lat: float, lng: float) -> Optional[str]:
        # a timeout has to surface inside the breaker to count as a failure
        return await asyncio.wait_for(self._fetch(lat, lng), timeout=self.timeout_seconds)

    async def _fetch(self, lat: float, lng: float) -> Optional[str]:
        response = await self.client.get(
            self.base_url,
            params={"api_key": self.api_key, "point.lat": lat, "point.lon": lng},
        )
        response.raise_for_status()
        return extract_label(response.json())

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._pending.clear()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
