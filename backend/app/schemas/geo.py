"""
Geographic value types shared by the motion components.
"""

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """An immutable latitude/longitude pair."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    class Config:
        frozen = True
