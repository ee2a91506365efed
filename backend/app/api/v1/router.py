"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import dashboard, live_tracking, simulation, playback

router = APIRouter()

# Live metrics
router.include_router(dashboard.router)

# Map markers
router.include_router(live_tracking.router)

# Motion
router.include_router(simulation.router)
router.include_router(playback.router)
