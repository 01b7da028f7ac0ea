"""AlertHistory model - one record per channel per notified event."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey

from uptime_engine.database.base import Base
from uptime_engine.models.enums import AlertStatus


class AlertHistory(Base):
    """
    AlertHistory model representing one delivery attempt.
    
    Attributes:
        id: Primary key
        monitor_id: Foreign key to monitor
        channel_id: Foreign key to alert channel
        incident_id: Incident the alert refers to (nullable)
        message: Rendered message text
        status: Delivery status (sent, failed)
        sent_at: Timestamp when delivery was attempted
    """
    
    __tablename__ = "alert_history"
    
    id = Column(Integer, primary_key=True, index=True)
    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    channel_id = Column(
        Integer,
        ForeignKey("alert_channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    incident_id = Column(
        Integer,
        ForeignKey("incidents.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=AlertStatus.PENDING.value, index=True)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    
    def __repr__(self) -> str:
        """String representation of alert history entry."""
        return (
            f"<AlertHistory(id={self.id}, monitor_id={self.monitor_id}, "
            f"channel_id={self.channel_id}, status={self.status})>"
        )
