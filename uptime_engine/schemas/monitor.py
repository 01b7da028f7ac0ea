"""Pydantic schemas for the monitor configuration cached by the scheduler."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class MonitorSnapshot(BaseModel):
    """Immutable copy of a monitor row, detached from any database session."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    name: str
    url: str
    method: str = "GET"
    headers: Optional[Dict[str, Any]] = None
    body: Optional[str] = None
    expected_status: int = 200
    check_interval_seconds: int = 300
    timeout_ms: int = 30000
    is_active: bool = True
