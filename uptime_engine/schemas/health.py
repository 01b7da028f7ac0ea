"""Pydantic schemas for the operational health endpoints."""

from typing import List, Optional
from pydantic import BaseModel, Field


class LivenessResponse(BaseModel):
    """Static liveness payload."""
    status: str = Field(default="ok")


class IntervalGroupStatus(BaseModel):
    """One scheduler timer group."""
    interval_seconds: int
    monitor_count: int
    next_run_time: Optional[str] = None


class SchedulerStatusResponse(BaseModel):
    """Schema for scheduler status response."""
    running: bool
    version: str
    timestamp: str
    monitor_count: int
    groups: List[IntervalGroupStatus]
    pending_alert_dispatches: int = 0
