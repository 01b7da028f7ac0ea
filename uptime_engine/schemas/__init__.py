"""Pydantic schemas used by the engine and its HTTP surface."""

from uptime_engine.schemas.monitor import MonitorSnapshot
from uptime_engine.schemas.health import (
    LivenessResponse,
    IntervalGroupStatus,
    SchedulerStatusResponse
)

__all__ = [
    "MonitorSnapshot",
    "LivenessResponse",
    "IntervalGroupStatus",
    "SchedulerStatusResponse",
]
