"""
Runtime dependencies for FastAPI.

Endpoints reach the live-state components through these dependencies so
tests can substitute a runtime built on in-memory sources.
"""

from typing import Optional
from fastapi import Depends

from backend.app.core.config import settings
from backend.app.core.redis_client import redis_client
from backend.app.db.session import AsyncSessionLocal
from backend.app.services.runtime import FleetRuntime

_runtime: Optional[FleetRuntime] = None


def build_runtime() -> FleetRuntime:
    """Runtime over the configured database and Redis."""
    return FleetRuntime(
        settings=settings,
        session_factory=AsyncSessionLocal,
        redis_client=redis_client,
    )


def get_runtime() -> FleetRuntime:
    """
    FastAPI dependency returning the process-wide runtime.

    Built lazily so importing the app has no side effects.
    """
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def get_aggregator(runtime: FleetRuntime = Depends(get_runtime)):
    return runtime.aggregator


def get_simulation(runtime: FleetRuntime = Depends(get_runtime)):
    return runtime.simulation


def get_playback(runtime: FleetRuntime = Depends(get_runtime)):
    return runtime.playback
