"""AlertChannel model - a user-scoped notification target."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime

from uptime_engine.database.base import Base


class AlertChannel(Base):
    """
    AlertChannel model.
    
    Attributes:
        id: Primary key
        user_id: Owning user
        type: Channel kind (telegram, slack, discord, email, webhook)
        config: Kind-specific settings, e.g. ``{"webhookUrl": ...}``
        is_verified: Whether the owner confirmed the channel
        created_at: Timestamp when channel was created
    """
    
    __tablename__ = "alert_channels"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    type = Column(String(20), nullable=False)
    config = Column(JSON, nullable=False, default=dict)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    def __repr__(self) -> str:
        """String representation of alert channel."""
        return f"<AlertChannel(id={self.id}, user_id={self.user_id}, type={self.type})>"
