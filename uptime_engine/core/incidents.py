"""Incident state machine driven by probe outcomes."""

import asyncio
import weakref
from typing import Optional, TYPE_CHECKING

from uptime_engine.core.metrics import metrics_collector
from uptime_engine.database.store import MonitorStore
from uptime_engine.models.incident import Incident
from uptime_engine.schemas.monitor import MonitorSnapshot
from uptime_engine.utils.logger import get_logger
from uptime_engine.utils.tasks import BackgroundTaskSet

if TYPE_CHECKING:
    from uptime_engine.core.alerts import AlertDispatcher

logger = get_logger(__name__)

DEFAULT_INCIDENT_CAUSE = "Multiple consecutive check failures"


class IncidentDetector:
    """
    Per-monitor state machine with two states: no incident and ongoing.

    Transitions:
        ongoing + up      -> resolve incident, dispatch recovery alerts
        none + down       -> open incident if the last ``threshold`` checks
                             are all down, dispatch down alerts
        ongoing + down    -> nothing
        none + up         -> nothing

    The current state is read from the store on every evaluation. Alert
    dispatch runs in the background so the next probe never waits for it.
    """

    def __init__(
        self,
        store: MonitorStore,
        dispatcher: "AlertDispatcher",
        threshold: int = 3
    ):
        """
        Initialize incident detector.

        Args:
            store: Persistence for checks and incidents
            dispatcher: Alert dispatcher notified on transitions
            threshold: Consecutive down checks required to open an incident
        """
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.store = store
        self.dispatcher = dispatcher
        self.threshold = threshold
        self.dispatches = BackgroundTaskSet("alert-dispatch")
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, monitor_id: int) -> asyncio.Lock:
        lock = self._locks.get(monitor_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[monitor_id] = lock
        return lock

    async def evaluate(
        self,
        monitor: MonitorSnapshot,
        is_up: bool,
        error_message: Optional[str]
    ) -> Optional[Incident]:
        """
        Apply the latest probe outcome to a monitor's incident state.

        Must be called after the probe's check has been persisted.

        Args:
            monitor: Monitor that was probed
            is_up: Classification of the latest probe
            error_message: Error description of the latest probe

        Returns:
            Incident: The incident opened or resolved by this evaluation,
            or None when no transition happened
        """
        lock = self._lock_for(monitor.id)
        async with lock:
            ongoing = await self.store.get_ongoing_incident(monitor.id)

            if ongoing is not None:
                if not is_up:
                    return None
                return await self._resolve(monitor, ongoing)

            if is_up:
                return None

            recent = await self.store.get_recent_checks(monitor.id, self.threshold)
            if len(recent) < self.threshold or any(check.is_up for check in recent):
                logger.debug(
                    "Monitor failing below incident threshold",
                    extra={
                        "monitor_id": monitor.id,
                        "recent_checks": len(recent),
                        "threshold": self.threshold
                    }
                )
                return None

            return await self._open(monitor, error_message)

    async def _resolve(self, monitor: MonitorSnapshot, ongoing: Incident) -> Optional[Incident]:
        resolved = await self.store.resolve_incident(ongoing.id)
        if resolved is None:
            logger.warning(
                "Ongoing incident disappeared before it could be resolved",
                extra={"monitor_id": monitor.id, "incident_id": ongoing.id}
            )
            return None

        metrics_collector.record_incident("resolved")
        logger.info(
            "Incident resolved",
            extra={
                "monitor_id": monitor.id,
                "monitor_name": monitor.name,
                "incident_id": resolved.id
            }
        )

        self.dispatches.spawn(
            self.dispatcher.dispatch_recovery(monitor, resolved.id),
            description=f"recovery-{monitor.id}-{resolved.id}"
        )
        return resolved

    async def _open(self, monitor: MonitorSnapshot, error_message: Optional[str]) -> Optional[Incident]:
        incident = await self.store.open_incident(
            monitor.id,
            error_message or DEFAULT_INCIDENT_CAUSE
        )
        if incident is None:
            return None

        metrics_collector.record_incident("opened")
        logger.warning(
            "Incident opened",
            extra={
                "monitor_id": monitor.id,
                "monitor_name": monitor.name,
                "incident_id": incident.id,
                "cause": incident.cause
            }
        )

        self.dispatches.spawn(
            self.dispatcher.dispatch_down(monitor, incident.id, error_message),
            description=f"down-{monitor.id}-{incident.id}"
        )
        return incident

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight alert dispatches to finish."""
        return await self.dispatches.drain(timeout)
