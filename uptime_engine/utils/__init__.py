"""Utility modules for Uptime Engine."""

from uptime_engine.utils.logger import get_logger
from uptime_engine.utils.tasks import BackgroundTaskSet

__all__ = ["get_logger", "BackgroundTaskSet"]
