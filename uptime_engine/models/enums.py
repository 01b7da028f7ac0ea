"""Enumerations shared by the engine's models."""

from enum import Enum


class IncidentState(str, Enum):
    """Lifecycle of an incident."""
    ONGOING = "ongoing"
    RESOLVED = "resolved"


class ChannelKind(str, Enum):
    """Supported alert channel types."""
    TELEGRAM = "telegram"
    SLACK = "slack"
    DISCORD = "discord"
    EMAIL = "email"
    WEBHOOK = "webhook"


class AlertStatus(str, Enum):
    """Delivery status of one alert history entry."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class AlertType(str, Enum):
    """Kind of state transition being notified."""
    DOWN = "down"
    RECOVERY = "recovery"
