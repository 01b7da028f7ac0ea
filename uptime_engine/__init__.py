"""Uptime Engine - scheduled HTTP probing, incident detection and alert fan-out."""

__version__ = "1.0.0"
