"""Check model - one immutable record per executed probe."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from uptime_engine.database.base import Base


class Check(Base):
    """
    Check model representing the outcome of a single probe.
    
    Attributes:
        id: Primary key
        monitor_id: Foreign key to monitor
        status_code: HTTP status code received (null on transport failure)
        response_time_ms: Latency in milliseconds
        is_up: Whether the probe counted as healthy
        error_message: Error details if the probe was down
        response_body: Response body truncated to the configured byte budget
        region: Region tag of the prober
        checked_at: Timestamp when the probe was performed
    """
    
    __tablename__ = "checks"
    __table_args__ = (
        Index("ix_checks_monitor_checked", "monitor_id", "checked_at"),
    )
    
    # Primary key
    id = Column(Integer, primary_key=True, index=True)
    
    # Foreign key to monitor
    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    # Probe outcome
    status_code = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    is_up = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    response_body = Column(Text, nullable=True)
    region = Column(String(50), nullable=False, default="us-east-1")
    
    # Timestamp
    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    
    # Relationships
    monitor = relationship("Monitor", back_populates="checks")
    
    def __repr__(self) -> str:
        """String representation of check."""
        return (
            f"<Check(id={self.id}, monitor_id={self.monitor_id}, "
            f"is_up={self.is_up}, status_code={self.status_code})>"
        )
