"""Core engine modules for Uptime Engine."""

from uptime_engine.core.alerts import AlertDispatcher
from uptime_engine.core.check_runner import CheckRunner
from uptime_engine.core.incidents import IncidentDetector
from uptime_engine.core.scheduler import MonitoringScheduler

__all__ = ["AlertDispatcher", "CheckRunner", "IncidentDetector", "MonitoringScheduler"]
