"""Incident model - a contiguous unhealthy period for one monitor."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from uptime_engine.database.base import Base
from uptime_engine.models.enums import IncidentState


class Incident(Base):
    """
    Incident model.
    
    The partial unique index allows any number of resolved incidents per
    monitor but at most one in the ``ongoing`` state.
    
    Attributes:
        id: Primary key
        monitor_id: Foreign key to monitor
        state: ``ongoing`` or ``resolved``
        cause: Error description of the probe that opened the incident
        started_at: When the incident was opened
        resolved_at: When the incident was resolved (null while ongoing)
    """
    
    __tablename__ = "incidents"
    __table_args__ = (
        Index(
            "uq_incidents_monitor_ongoing",
            "monitor_id",
            unique=True,
            sqlite_where=text("state = 'ongoing'"),
            postgresql_where=text("state = 'ongoing'"),
        ),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    state = Column(
        String(20),
        nullable=False,
        default=IncidentState.ONGOING.value,
        index=True
    )
    cause = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    
    monitor = relationship("Monitor", back_populates="incidents")
    
    @property
    def is_ongoing(self) -> bool:
        return self.state == IncidentState.ONGOING.value
    
    def __repr__(self) -> str:
        """String representation of incident."""
        return (
            f"<Incident(id={self.id}, monitor_id={self.monitor_id}, "
            f"state={self.state})>"
        )
