"""Monitor model - represents an HTTP endpoint to probe."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, DateTime
from sqlalchemy.orm import relationship

from uptime_engine.database.base import Base


class Monitor(Base):
    """
    Monitor model representing an endpoint checked on a fixed cadence.
    
    Rows are created and edited by the external CRUD layer; the engine
    only reads them.
    
    Attributes:
        id: Primary key
        user_id: Owning user (users are managed outside the engine)
        name: Human-readable monitor name
        url: Full URL to probe
        method: HTTP method (GET, POST, etc.)
        headers: Optional HTTP headers as JSON
        body: Optional raw request body (ignored for GET/HEAD)
        expected_status: HTTP status code that counts as "up"
        check_interval_seconds: Probe cadence in seconds
        timeout_ms: Request timeout in milliseconds
        is_active: Whether monitoring is enabled
        created_at: Timestamp when monitor was created
        updated_at: Timestamp of last update
    """
    
    __tablename__ = "monitors"
    
    # Primary key
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    
    # Probe configuration
    name = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    headers = Column(JSON, nullable=True)
    body = Column(Text, nullable=True)
    expected_status = Column(Integer, nullable=False, default=200)
    check_interval_seconds = Column(Integer, nullable=False, default=300)
    timeout_ms = Column(Integer, nullable=False, default=30000)
    
    # Status
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )
    
    # Relationships
    checks = relationship(
        "Check",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    incidents = relationship(
        "Incident",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    
    def __repr__(self) -> str:
        """String representation of monitor."""
        return f"<Monitor(id={self.id}, name='{self.name}', url='{self.url}')>"
