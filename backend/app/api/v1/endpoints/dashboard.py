"""
Dashboard API Endpoints.

Read-only live metrics for the operator dashboard.
"""

from fastapi import APIRouter, Depends, Path

from backend.app.core.dependencies import get_aggregator
from backend.app.schemas.metrics import DashboardState
from backend.app.services.metrics_aggregator import MetricsAggregator

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/metrics", response_model=DashboardState)
async def get_dashboard_metrics(
    aggregator: MetricsAggregator = Depends(get_aggregator)
):
    """
    Get the current dashboard state.

    Always answers with the last known good values; `degraded` and
    `errors` report sources whose live query has failed.
    """
    return aggregator.state


@router.post("/sources/{source}/resubscribe", response_model=DashboardState)
async def resubscribe_source(
    source: str = Path(..., description="loads, drivers or shippers"),
    aggregator: MetricsAggregator = Depends(get_aggregator)
):
    """Re-open the live query of a source (e.g. after it failed)."""
    aggregator.resubscribe(source)
    return aggregator.state
