"""
Demo Simulation API Endpoints.

Start and stop synthetic driver motion for demonstrations.
"""

from fastapi import APIRouter, Depends, Body

from backend.app.core.dependencies import get_simulation
from backend.app.schemas.simulation import SimulationStartRequest, SimulationState
from backend.app.services.simulation import SimulationController

router = APIRouter(prefix="/simulation", tags=["Demo Simulation"])


@router.get("", response_model=SimulationState)
async def get_simulation_state(
    simulation: SimulationController = Depends(get_simulation)
):
    """Get progress and positions of the current batch."""
    return simulation.state()


@router.post("/start", response_model=SimulationState)
async def start_simulation(
    request: SimulationStartRequest = Body(...),
    simulation: SimulationController = Depends(get_simulation)
):
    """
    Start a simulation batch.

    Replaces the current batch. Invalid configs are skipped; if none is
    valid the current batch keeps running untouched.
    """
    simulation.start(request.configs)
    return simulation.state()


@router.post("/stop", response_model=SimulationState)
async def stop_simulation(
    simulation: SimulationController = Depends(get_simulation)
):
    """Cancel every run immediately and reset progress."""
    simulation.stop()
    return simulation.state()


@router.post("/clear", response_model=SimulationState)
async def clear_finished_runs(
    simulation: SimulationController = Depends(get_simulation)
):
    """Forget the retained positions of finished runs."""
    simulation.clear_finished()
    return simulation.state()
