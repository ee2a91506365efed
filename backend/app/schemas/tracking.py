"""
Live tracking schemas.
"""

from pydantic import BaseModel
from typing import Optional

from backend.app.schemas.geo import Coordinates


class LiveDriverResponse(BaseModel):
    """A driver as drawn on the command-center map."""
    id: str
    name: str
    status: Optional[str] = None
    position: Optional[Coordinates] = None
    simulated: bool = False
    location_label: str
    current_load_id: Optional[str] = None
    eta: Optional[str] = None
    distance_remaining: Optional[float] = None
