"""
Path Playback API Endpoints.

Scrub through a driver's recorded path.
"""

from fastapi import APIRouter, Depends, Body

from backend.app.core.dependencies import get_playback, get_runtime
from backend.app.schemas.playback import PlaybackSessionCreate, PlaybackSpeedRequest, PlaybackState
from backend.app.services.playback import PlaybackController
from backend.app.services.runtime import FleetRuntime

router = APIRouter(prefix="/playback", tags=["Playback"])


@router.get("", response_model=PlaybackState)
async def get_playback_state(
    playback: PlaybackController = Depends(get_playback)
):
    """Get the playback session state."""
    return playback.state()


@router.post("/session", response_model=PlaybackState)
async def select_playback_subject(
    request: PlaybackSessionCreate = Body(...),
    runtime: FleetRuntime = Depends(get_runtime)
):
    """
    Select a subject for playback.

    Discards any previous session. Without explicit locations the
    subject's recorded GPS breadcrumbs are used.
    """
    locations = request.locations
    if locations is None:
        locations = await runtime.load_breadcrumbs(request.subject_id)
    return runtime.playback.select(request.subject_id, locations)


@router.delete("/session", response_model=PlaybackState)
async def close_playback_session(
    playback: PlaybackController = Depends(get_playback)
):
    """Close the session (back to IDLE)."""
    playback.close()
    return playback.state()


@router.post("/play", response_model=PlaybackState)
async def play(playback: PlaybackController = Depends(get_playback)):
    """Start advancing the playhead."""
    playback.play()
    return playback.state()


@router.post("/pause", response_model=PlaybackState)
async def pause(playback: PlaybackController = Depends(get_playback)):
    """Hold the playhead."""
    playback.pause()
    return playback.state()


@router.post("/restart", response_model=PlaybackState)
async def restart(playback: PlaybackController = Depends(get_playback)):
    """Rewind to the start and pause."""
    playback.restart()
    return playback.state()


@router.post("/speed", response_model=PlaybackState)
async def set_speed(
    request: PlaybackSpeedRequest = Body(...),
    playback: PlaybackController = Depends(get_playback)
):
    """Set the speed multiplier (1, 2 or 4)."""
    playback.set_speed(request.speed)
    return playback.state()


@router.post("/speed/cycle", response_model=PlaybackState)
async def cycle_speed(playback: PlaybackController = Depends(get_playback)):
    """Step to the next speed multiplier."""
    playback.cycle_speed()
    return playback.state()
