"""
Demo simulation schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from backend.app.schemas.geo import Coordinates


class SimulationConfig(BaseModel):
    """One simulated vehicle motion."""
    entity_id: str = Field(..., min_length=1)
    start_location: Coordinates
    end_location: Coordinates
    duration_seconds: float = Field(..., gt=0)


class SimulationStartRequest(BaseModel):
    """Request body for starting a batch."""
    configs: List[dict] = Field(default_factory=list)


class SimulatedPosition(BaseModel):
    """Sampled position of one simulated entity."""
    entity_id: str
    run_id: int
    position: Coordinates
    fraction: float
    finished: bool

    class Config:
        frozen = True


class SimulationState(BaseModel):
    """Read-only view of the simulation batch."""
    is_simulating: bool
    progress: float
    generation: int
    active_runs: int
    finished_runs: int
    positions: List[SimulatedPosition]
    last_tick: Optional[float] = None
