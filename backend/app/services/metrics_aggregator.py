"""
Metrics Aggregator.

Folds full collection snapshots (loads, drivers, shippers) into the
dashboard state. Every recomputation builds a brand-new immutable value from
the latest snapshot and swaps it in with a single assignment, so readers
never see fields computed from two different snapshots.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from backend.app.core.exceptions import MalformedRecordError, ResourceNotFoundError
from backend.app.models.enums import DriverStatus, LoadStatus
from backend.app.schemas.metrics import (
    DailyCount, DashboardState, DerivedMetrics, DriverStatusCounts, LoadStatusCounts
)
from backend.app.schemas.records import DriverRecord, LoadRecord, RecordBase, ShipperRecord
from backend.app.services.cache import utcnow
from backend.app.services.stream import CollectionSource, Snapshot, StreamError, StreamEvent, Subscription

logger = logging.getLogger("fleetops.metrics")

LOADS = "loads"
DRIVERS = "drivers"
SHIPPERS = "shippers"
SOURCES = (LOADS, DRIVERS, SHIPPERS)

StateListener = Callable[[DashboardState], None]
RawRecord = Union[RecordBase, Mapping[str, Any]]


def parse_record(model: type, raw: RawRecord, kind: str) -> RecordBase:
    """Validate one document; raises MalformedRecordError."""
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        record_id = raw.get("id") if isinstance(raw, Mapping) else None
        raise MalformedRecordError(kind, f"{exc.error_count()} invalid field(s)", record_id) from exc


def load_revenue(load: LoadRecord) -> float:
    """Derived revenue wins over a possibly stale flat rate."""
    if load.rate_per_mile is not None and load.distance is not None:
        return load.rate_per_mile * load.distance
    if load.rate is not None:
        return load.rate
    return 0.0


def loads_by_day(loads: Iterable[LoadRecord], days: int = 7) -> List[DailyCount]:
    """Loads per UTC creation day, latest ``days`` distinct days, ascending."""
    counter: Counter = Counter()
    for load in loads:
        if load.created_at is None:
            continue
        created = load.created_at
        if created.tzinfo is not None:
            created = created.astimezone(timezone.utc)
        counter[created.date()] += 1
    ordered = sorted(counter.items())
    if days > 0:
        ordered = ordered[-days:]
    return [DailyCount(date=day, count=count) for day, count in ordered]


def compute_load_metrics(
    loads: Sequence[RawRecord],
    default_fuel_efficiency: float = 7.0,
    histogram_days: int = 7,
    recent_limit: int = 10,
    last_update: Optional[datetime] = None,
) -> DerivedMetrics:
    """Pure function of one full loads snapshot."""
    counts = Counter()
    total_revenue = 0.0
    rate_sum = 0.0
    rate_count = 0
    fuel_sum = 0.0
    fuel_count = 0
    parsed: List[LoadRecord] = []

    for raw in loads:
        try:
            load = parse_record(LoadRecord, raw, "load")
        except MalformedRecordError as exc:
            logger.warning("Counting malformed load only in total: %s", exc.message, extra=exc.details)
            continue
        parsed.append(load)
        counts[load.status] += 1

        total_revenue += load_revenue(load)

        if load.rate_per_mile is not None:
            rate_sum += load.rate_per_mile
            rate_count += 1

        fuel_sum += load.mpg if load.mpg is not None else default_fuel_efficiency
        fuel_count += 1

    status_counts = LoadStatusCounts(
        active=counts[LoadStatus.ACTIVE.value],
        pending=counts[LoadStatus.PENDING.value],
        delivered=counts[LoadStatus.DELIVERED.value],
        cancelled=counts[LoadStatus.CANCELLED.value],
        total=len(loads),
    )

    return DerivedMetrics(
        load_counts=status_counts,
        total_revenue=total_revenue,
        avg_rate=rate_sum / rate_count if rate_count else 0.0,
        avg_fuel_efficiency=fuel_sum / fuel_count if fuel_count else default_fuel_efficiency,
        active_loads=status_counts.active,
        delivered_loads=status_counts.delivered,
        in_transit_loads=counts[LoadStatus.IN_TRANSIT.value],
        delayed_loads=status_counts.pending,
        loads_by_day=tuple(loads_by_day(parsed, histogram_days)),
        recent_loads=tuple(parsed[:recent_limit]),
        last_update=last_update,
    )


def compute_driver_status_counts(drivers: Sequence[RawRecord]) -> DriverStatusCounts:
    counts = Counter()
    for raw in drivers:
        try:
            driver = parse_record(DriverRecord, raw, "driver")
        except MalformedRecordError as exc:
            logger.warning("Counting malformed driver only in total: %s", exc.message, extra=exc.details)
            continue
        counts[driver.status] += 1
    return DriverStatusCounts(
        pickup=counts[DriverStatus.PICKUP.value],
        in_transit=counts[DriverStatus.IN_TRANSIT.value],
        accomplished=counts[DriverStatus.ACCOMPLISHED.value],
        breakdown=counts[DriverStatus.BREAKDOWN.value],
        total=len(drivers),
    )


class MetricsAggregator:
    """
    Owner of the dashboard state.

    Each source updates its own slice; slices default to zero until their
    first snapshot. A source error is sticky and keeps the last good values.
    """

    def __init__(
        self,
        default_fuel_efficiency: float = 7.0,
        histogram_days: int = 7,
        recent_limit: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.default_fuel_efficiency = default_fuel_efficiency
        self.histogram_days = histogram_days
        self.recent_limit = recent_limit
        self._clock = clock

        self._metrics = DerivedMetrics()
        self._drivers: tuple = ()
        self._driver_counts = DriverStatusCounts()
        self._shipper_count = 0
        self._loaded = False
        self._errors: Dict[str, str] = {}
        self._state = DashboardState()

        self._sources: Dict[str, CollectionSource] = {}
        self._subscriptions: Dict[str, Subscription] = {}
        self._last_sequence: Dict[str, int] = {}
        self._listeners: List[StateListener] = []

    # --- read side -----------------------------------------------------

    @property
    def metrics(self) -> DerivedMetrics:
        return self._metrics

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def drivers(self) -> tuple:
        """Latest valid driver records (read-only)."""
        return self._drivers

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # --- subscriptions ---------------------------------------------------

    def attach(self, kind: str, source: CollectionSource) -> Subscription:
        """(Re)subscribe ``kind`` to ``source``; any previous subscription is released."""
        if kind not in SOURCES:
            raise ResourceNotFoundError("Source", kind)
        self.detach(kind)
        self._sources[kind] = source
        self._last_sequence[kind] = 0
        logger.info("Subscribing to '%s'", kind)
        subscription = source.subscribe(lambda event, k=kind: self.on_event(k, event))
        # the error handler may already have released an immediately failing subscription
        if subscription.active:
            self._subscriptions[kind] = subscription
        return subscription

    def resubscribe(self, kind: str) -> Subscription:
        source = self._sources.get(kind)
        if source is None:
            raise ResourceNotFoundError("Source", kind)
        return self.attach(kind, source)

    def detach(self, kind: str) -> None:
        subscription = self._subscriptions.pop(kind, None)
        if subscription is not None:
            subscription.unsubscribe()

    def close(self) -> None:
        logger.info("Releasing metric subscriptions")
        for kind in list(self._subscriptions):
            self.detach(kind)

    def on_event(self, kind: str, event: StreamEvent) -> None:
        if isinstance(event, StreamError):
            self.on_error(kind, event.reason)
            return
        if isinstance(event, Snapshot):
            if event.sequence <= self._last_sequence.get(kind, 0):
                logger.debug("Dropping stale '%s' snapshot #%d", kind, event.sequence)
                return
            self._last_sequence[kind] = event.sequence
            handler = {
                LOADS: self.on_loads_snapshot,
                DRIVERS: self.on_drivers_snapshot,
                SHIPPERS: self.on_shippers_snapshot,
            }[kind]
            handler(event.records)

    # --- snapshot handlers -----------------------------------------------

    def on_loads_snapshot(self, loads: Sequence[RawRecord]) -> DerivedMetrics:
        loads = list(loads)
        logger.debug("Loads snapshot received: %d documents", len(loads))
        now = self._clock()
        previous = self._metrics.last_update
        stamp = now if previous is None or now >= previous else previous

        self._metrics = compute_load_metrics(
            loads,
            default_fuel_efficiency=self.default_fuel_efficiency,
            histogram_days=self.histogram_days,
            recent_limit=self.recent_limit,
            last_update=stamp,
        )
        self._loaded = True
        self._errors.pop(LOADS, None)
        self._publish()
        return self._metrics

    def on_drivers_snapshot(self, drivers: Sequence[RawRecord]) -> None:
        drivers = list(drivers)
        logger.debug("Drivers snapshot received: %d documents", len(drivers))
        valid = []
        for raw in drivers:
            try:
                valid.append(parse_record(DriverRecord, raw, "driver"))
            except MalformedRecordError:
                continue
        self._drivers = tuple(valid)
        self._driver_counts = compute_driver_status_counts(drivers)
        self._errors.pop(DRIVERS, None)
        self._publish()

    def on_shippers_snapshot(self, shippers: Sequence[RawRecord]) -> None:
        shippers = list(shippers)
        logger.debug("Shippers snapshot received: %d documents", len(shippers))
        self._shipper_count = len(shippers)
        self._errors.pop(SHIPPERS, None)
        self._publish()

    def on_error(self, kind: str, reason: str) -> None:
        logger.error("Error listening to '%s': %s", kind, reason)
        self._subscriptions.pop(kind, None)
        self._errors[kind] = reason
        self._publish()

    def _publish(self) -> None:
        driver_count = self._driver_counts.total
        self._state = DashboardState(
            metrics=self._metrics,
            driver_count=driver_count,
            shipper_count=self._shipper_count,
            total_users=driver_count + self._shipper_count,
            driver_status_counts=self._driver_counts,
            is_loading=not self._loaded and LOADS not in self._errors,
            degraded=bool(self._errors),
            errors=dict(self._errors),
        )
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Dashboard state listener failed")
