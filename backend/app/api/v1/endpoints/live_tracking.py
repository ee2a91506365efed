"""
Live Driver Tracking API Endpoints.

Driver markers for the command-center map.
"""

from fastapi import APIRouter, Depends
from typing import List

from backend.app.core.dependencies import get_runtime
from backend.app.schemas.tracking import LiveDriverResponse
from backend.app.services.runtime import FleetRuntime

router = APIRouter(prefix="/live", tags=["Live Tracking"])


@router.get("/drivers", response_model=List[LiveDriverResponse])
async def get_live_drivers(
    runtime: FleetRuntime = Depends(get_runtime)
):
    """
    Get every driver with its current map position.

    Drivers moved by the demo simulation report the simulated position.
    Location labels resolve in the background; until then (or if the
    geocoding provider fails) a placeholder is returned.
    """
    return runtime.live_drivers()
