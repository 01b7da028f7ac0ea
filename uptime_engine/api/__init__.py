"""Operational HTTP routes for Uptime Engine."""
