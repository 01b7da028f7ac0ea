"""Database models for Uptime Engine."""

from uptime_engine.models.enums import IncidentState, ChannelKind, AlertStatus, AlertType
from uptime_engine.models.monitor import Monitor
from uptime_engine.models.check import Check
from uptime_engine.models.incident import Incident
from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.alert_history import AlertHistory

__all__ = [
    "Monitor",
    "Check",
    "Incident",
    "AlertChannel",
    "AlertHistory",
    "IncidentState",
    "ChannelKind",
    "AlertStatus",
    "AlertType",
]
