"""
Path playback schemas.
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from backend.app.schemas.geo import Coordinates


class PlaybackLocation(BaseModel):
    """One time-stamped waypoint of a recorded path."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    recorded_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class PlaybackSessionCreate(BaseModel):
    """Select a subject for playback; waypoints default to its breadcrumbs."""
    subject_id: str = Field(..., min_length=1)
    locations: Optional[List[PlaybackLocation]] = None


class PlaybackSpeedRequest(BaseModel):
    speed: int


class PlaybackState(BaseModel):
    """Read-only view of the playback session."""
    status: str  # IDLE, PAUSED, PLAYING
    subject_id: Optional[str] = None
    position: float = 0.0
    progress: float = 0.0
    speed: int = 1
    waypoint_count: int = 0
    current_index: int = 0
    current_location: Optional[Coordinates] = None
