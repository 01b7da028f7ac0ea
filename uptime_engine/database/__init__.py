"""Database module for Uptime Engine."""

from uptime_engine.database.base import Base
from uptime_engine.database.session import engine, async_session

__all__ = ["Base", "engine", "async_session"]
