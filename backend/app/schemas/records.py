"""
Record schemas for snapshots delivered by the upstream store.

Documents may arrive with snake_case or camelCase keys.
"""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional

from backend.app.models.enums import normalize_status
from backend.app.schemas.geo import Coordinates


class RecordBase(BaseModel):
    """Read-only view of an upstream document."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        frozen = True

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _normalize_status(cls, value):
        return normalize_status(value)


class LoadRecord(RecordBase):
    """A shipment."""
    id: str = Field(..., min_length=1)
    shipper_id: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    status: Optional[str] = None
    rate: Optional[float] = None
    rate_per_mile: Optional[float] = None
    distance: Optional[float] = None
    mpg: Optional[float] = None
    created_at: Optional[datetime] = None


class DriverRecord(RecordBase):
    """Driver state."""
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    status: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    current_load_id: Optional[str] = None
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    eta: Optional[str] = None
    distance_remaining: Optional[float] = None
    last_update: Optional[datetime] = None

    @property
    def position(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, lng=self.longitude)


class ShipperRecord(RecordBase):
    """A shipper account."""
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
