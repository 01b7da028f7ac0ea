"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from uptime_engine import __version__
from uptime_engine.core.scheduler import get_scheduler
from uptime_engine.schemas.health import (
    IntervalGroupStatus,
    LivenessResponse,
    SchedulerStatusResponse,
)

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def health_check():
    """Static liveness probe."""
    return LivenessResponse()


@router.get("/health/scheduler", response_model=SchedulerStatusResponse)
async def scheduler_status(request: Request):
    """
    Scheduler status.

    Returns the interval groups with their member counts and next run
    times, plus the number of alert dispatches still in flight.
    """
    scheduler = get_scheduler()
    if scheduler is None:
        return JSONResponse(
            status_code=503,
            content={"detail": "Scheduler not initialized"}
        )

    status = scheduler.get_status()
    detector = getattr(request.app.state, "incident_detector", None)

    return SchedulerStatusResponse(
        running=status["running"],
        version=__version__,
        timestamp=datetime.utcnow().isoformat(),
        monitor_count=status["monitor_count"],
        groups=[IntervalGroupStatus(**group) for group in status["groups"]],
        pending_alert_dispatches=len(detector.dispatches) if detector else 0
    )
