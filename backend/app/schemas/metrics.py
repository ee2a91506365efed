"""
Dashboard metrics schemas.

All values are immutable: the aggregator swaps whole objects, readers never
observe a half-updated one.
"""

import datetime as dt
from pydantic import BaseModel
from typing import Dict, Optional, Tuple

from backend.app.schemas.records import LoadRecord


class FrozenModel(BaseModel):
    class Config:
        frozen = True


class LoadStatusCounts(FrozenModel):
    """Counts per load status bucket."""
    active: int = 0
    pending: int = 0
    delivered: int = 0
    cancelled: int = 0
    total: int = 0


class DailyCount(FrozenModel):
    """Loads created on one UTC calendar day."""
    date: dt.date
    count: int


class DerivedMetrics(FrozenModel):
    """Metrics computed from the latest full loads snapshot."""
    load_counts: LoadStatusCounts = LoadStatusCounts()
    total_revenue: float = 0.0
    avg_rate: float = 0.0
    avg_fuel_efficiency: float = 0.0
    active_loads: int = 0
    delivered_loads: int = 0
    in_transit_loads: int = 0
    delayed_loads: int = 0
    loads_by_day: Tuple[DailyCount, ...] = ()
    recent_loads: Tuple[LoadRecord, ...] = ()
    last_update: Optional[dt.datetime] = None


class DriverStatusCounts(FrozenModel):
    """Counts per driver status bucket."""
    pickup: int = 0
    in_transit: int = 0
    accomplished: int = 0
    breakdown: int = 0
    total: int = 0


class DashboardState(FrozenModel):
    """Everything a dashboard card reads, in one read-only value."""
    metrics: DerivedMetrics = DerivedMetrics()
    driver_count: int = 0
    shipper_count: int = 0
    total_users: int = 0
    driver_status_counts: DriverStatusCounts = DriverStatusCounts()
    is_loading: bool = True
    degraded: bool = False
    errors: Dict[str, str] = {}
