"""Persistence operations used by the monitor execution engine."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.alert_history import AlertHistory
from uptime_engine.models.check import Check
from uptime_engine.models.enums import IncidentState
from uptime_engine.models.incident import Incident
from uptime_engine.models.monitor import Monitor
from uptime_engine.utils.logger import get_logger

logger = get_logger(__name__)


class MonitorStore:
    """
    Read/write access to monitors, checks, incidents and alert records.

    Every call opens its own session and commits its own write, so callers
    running concurrently never share a session.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Initialize store.

        Args:
            session_factory: Async session factory (defaults to the
                application-wide factory)
        """
        if session_factory is None:
            from uptime_engine.database.session import async_session
            session_factory = async_session
        self.session_factory = session_factory

    async def list_active_monitors(self) -> List[Monitor]:
        """Return every monitor with monitoring enabled."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Monitor).where(Monitor.is_active == True).order_by(Monitor.id)
            )
            return list(result.scalars().all())

    async def get_recent_checks(self, monitor_id: int, limit: int) -> List[Check]:
        """
        Return the most recent checks for a monitor, newest first.

        Args:
            monitor_id: Monitor ID
            limit: Maximum number of checks to return
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Check)
                .where(Check.monitor_id == monitor_id)
                .order_by(Check.checked_at.desc(), Check.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_ongoing_incident(self, monitor_id: int) -> Optional[Incident]:
        """Return the ongoing incident for a monitor, if any."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Incident).where(
                    Incident.monitor_id == monitor_id,
                    Incident.state == IncidentState.ONGOING.value
                )
            )
            return result.scalars().first()

    async def save_check(
        self,
        monitor_id: int,
        status_code: Optional[int],
        response_time_ms: Optional[int],
        is_up: bool,
        error_message: Optional[str],
        response_body: Optional[str],
        region: str,
        checked_at: Optional[datetime] = None
    ) -> Check:
        """Persist one probe result."""
        check = Check(
            monitor_id=monitor_id,
            status_code=status_code,
            response_time_ms=response_time_ms,
            is_up=is_up,
            error_message=error_message,
            response_body=response_body,
            region=region,
            checked_at=checked_at or datetime.utcnow()
        )
        async with self.session_factory() as db:
            db.add(check)
            await db.commit()
            await db.refresh(check)
        return check

    async def open_incident(self, monitor_id: int, cause: Optional[str]) -> Optional[Incident]:
        """
        Create an ongoing incident.

        Returns:
            Incident: The new incident, or None when another ongoing
            incident already exists for the monitor
        """
        incident = Incident(
            monitor_id=monitor_id,
            state=IncidentState.ONGOING.value,
            cause=cause,
            started_at=datetime.utcnow()
        )
        async with self.session_factory() as db:
            db.add(incident)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning(
                    "Ongoing incident already exists, not opening another",
                    extra={"monitor_id": monitor_id}
                )
                return None
            await db.refresh(incident)
        return incident

    async def resolve_incident(self, incident_id: int) -> Optional[Incident]:
        """
        Mark an incident resolved.

        The resolution timestamp never precedes the start timestamp.
        """
        async with self.session_factory() as db:
            incident = await db.get(Incident, incident_id)
            if incident is None:
                return None
            now = datetime.utcnow()
            incident.state = IncidentState.RESOLVED.value
            incident.resolved_at = max(now, incident.started_at) if incident.started_at else now
            await db.commit()
            await db.refresh(incident)
            return incident

    async def list_alert_channels(self, user_id: int) -> List[AlertChannel]:
        """Return every alert channel owned by a user."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(AlertChannel)
                .where(AlertChannel.user_id == user_id)
                .order_by(AlertChannel.id)
            )
            return list(result.scalars().all())

    async def record_alert(
        self,
        monitor_id: int,
        channel_id: int,
        incident_id: Optional[int],
        message: str,
        status: str
    ) -> AlertHistory:
        """Persist one alert delivery attempt."""
        entry = AlertHistory(
            monitor_id=monitor_id,
            channel_id=channel_id,
            incident_id=incident_id,
            message=message,
            status=status,
            sent_at=datetime.utcnow()
        )
        async with self.session_factory() as db:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
        return entry
