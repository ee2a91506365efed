"""
Status enumerations for loads and drivers.

Both are closed sets; records carrying any other value are kept but counted
only in totals.
"""

import enum
from typing import Optional


class LoadStatus(str, enum.Enum):
    """
    Load (shipment) status enumeration.

    Statuses:
        ACTIVE: Posted and open
        PENDING: Waiting on pickup (reported as delayed on the dashboard)
        DELIVERED: Dropped off
        CANCELLED: Withdrawn by the shipper
        IN_TRANSIT: Picked up and on the road
    """
    ACTIVE = "active"
    PENDING = "pending"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    IN_TRANSIT = "in_transit"


class DriverStatus(str, enum.Enum):
    """Driver status enumeration."""
    PICKUP = "pickup"  # Heading to / at pickup
    IN_TRANSIT = "in_transit"  # Loaded and driving
    ACCOMPLISHED = "accomplished"  # Delivered, idle
    BREAKDOWN = "breakdown"  # Vehicle issue


def normalize_status(value: Optional[str]) -> Optional[str]:
    """Lower-case a raw status and read '-' as '_' ('In-Transit' -> 'in_transit')."""
    if value is None:
        return None
    return str(value).strip().lower().replace("-", "_")
