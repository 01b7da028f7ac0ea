"""Alert dispatcher fanning incident transitions out to a user's channels."""

import asyncio
import html
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import aiohttp

from uptime_engine.config import AlertsConfig
from uptime_engine.core.channels import (
    CHANNEL_SENDERS,
    AlertEvent,
    ChannelSender,
    resolve_kind,
)
from uptime_engine.core.metrics import metrics_collector
from uptime_engine.database.store import MonitorStore
from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.enums import AlertStatus, AlertType, ChannelKind
from uptime_engine.schemas.monitor import MonitorSnapshot
from uptime_engine.utils.logger import get_logger

logger = get_logger(__name__)


def format_down_message(
    monitor: MonitorSnapshot,
    error_message: Optional[str],
    threshold: int,
    timestamp: Optional[datetime] = None,
    escape: bool = False
) -> str:
    """Render the down alert; ``escape`` HTML-escapes the monitor values."""
    timestamp = timestamp or datetime.utcnow()
    quote = html.escape if escape else str
    return "\n".join([
        "🔴 <b>Monitor DOWN</b>",
        "",
        f"<b>Name:</b> {quote(monitor.name)}",
        f"<b>URL:</b> {quote(monitor.url)}",
        f"<b>Error:</b> {quote(error_message or 'Unknown error')}",
        f"<b>Time:</b> {timestamp.isoformat()}Z",
        "",
        f"This monitor has failed {threshold} consecutive checks.",
    ])


def format_recovery_message(
    monitor: MonitorSnapshot,
    timestamp: Optional[datetime] = None,
    escape: bool = False
) -> str:
    """Render the recovery alert; ``escape`` HTML-escapes the monitor values."""
    timestamp = timestamp or datetime.utcnow()
    quote = html.escape if escape else str
    return "\n".join([
        "🟢 <b>Monitor RECOVERED</b>",
        "",
        f"<b>Name:</b> {quote(monitor.name)}",
        f"<b>URL:</b> {quote(monitor.url)}",
        f"<b>Time:</b> {timestamp.isoformat()}Z",
        "",
        "The monitor is responding normally again.",
    ])


class AlertDispatcher:
    """
    Sends one event to every alert channel of a monitor's owner.

    Deliveries run concurrently and independently: a channel that is
    misconfigured, unreachable or answers with an error is recorded as
    ``failed`` without affecting the others. Exactly one alert history
    entry is written per channel per event. There are no retries.
    """

    def __init__(
        self,
        store: MonitorStore,
        config: Optional[AlertsConfig] = None,
        threshold: int = 3
    ):
        """
        Initialize alert dispatcher.

        Args:
            store: Persistence for channels and alert history
            config: Global alert credentials and transport settings
            threshold: Consecutive failures quoted in down messages
        """
        self.store = store
        self.config = config or AlertsConfig()
        self.threshold = threshold
        self.senders: Dict[ChannelKind, ChannelSender] = {
            kind: sender_cls(self.config) for kind, sender_cls in CHANNEL_SENDERS.items()
        }
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info(
            "Alert dispatcher initialized",
            extra={
                "telegram_configured": bool(self.config.telegram_bot_token),
                "email_configured": bool(self.config.resend_api_key),
                "channel_timeout_seconds": self.config.channel_timeout_seconds
            }
        )

    async def start(self) -> None:
        """Start the HTTP session used for channel calls."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.channel_timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def dispatch_down(
        self,
        monitor: MonitorSnapshot,
        incident_id: Optional[int],
        error_message: Optional[str]
    ) -> List[Tuple[int, str]]:
        """
        Notify every channel that a monitor went down.

        Args:
            monitor: Monitor that is down
            incident_id: Incident that was opened
            error_message: Error description of the latest probe

        Returns:
            list: ``(channel_id, status)`` per channel
        """
        return await self._dispatch(
            monitor,
            incident_id,
            AlertType.DOWN,
            lambda escape, now: format_down_message(
                monitor, error_message, self.threshold, timestamp=now, escape=escape
            )
        )

    async def dispatch_recovery(
        self,
        monitor: MonitorSnapshot,
        incident_id: Optional[int]
    ) -> List[Tuple[int, str]]:
        """
        Notify every channel that a monitor recovered.

        Args:
            monitor: Monitor that is back up
            incident_id: Incident that was resolved

        Returns:
            list: ``(channel_id, status)`` per channel
        """
        return await self._dispatch(
            monitor,
            incident_id,
            AlertType.RECOVERY,
            lambda escape, now: format_recovery_message(monitor, timestamp=now, escape=escape)
        )

    async def _dispatch(
        self,
        monitor: MonitorSnapshot,
        incident_id: Optional[int],
        alert_type: AlertType,
        render: Callable[[bool, datetime], str]
    ) -> List[Tuple[int, str]]:
        channels = await self.store.list_alert_channels(monitor.user_id)

        if not channels:
            logger.info(
                "No alert channels configured",
                extra={"monitor_id": monitor.id, "user_id": monitor.user_id}
            )
            return []

        await self.start()

        now = datetime.utcnow()
        event = AlertEvent(
            monitor=monitor,
            incident_id=incident_id,
            alert_type=alert_type,
            message=render(False, now),
            timestamp=now,
            html_message=render(True, now)
        )

        logger.info(
            "Dispatching alerts",
            extra={
                "monitor_id": monitor.id,
                "incident_id": incident_id,
                "alert_type": alert_type.value,
                "channels": len(channels)
            }
        )

        results = await asyncio.gather(
            *(self._deliver(channel, event) for channel in channels)
        )
        return list(results)

    async def _deliver(self, channel: AlertChannel, event: AlertEvent) -> Tuple[int, str]:
        """Deliver to one channel and record the attempt."""
        status = AlertStatus.SENT.value

        try:
            sender = self.senders[resolve_kind(channel.type)]
            await sender.send(self.session, event, channel.config or {})
            logger.info(
                "Alert sent",
                extra={
                    "channel_id": channel.id,
                    "channel_type": channel.type,
                    "monitor_id": event.monitor.id,
                    "alert_type": event.alert_type.value
                }
            )
        except Exception as e:
            status = AlertStatus.FAILED.value
            logger.error(
                "Failed to send alert",
                extra={
                    "channel_id": channel.id,
                    "channel_type": channel.type,
                    "monitor_id": event.monitor.id,
                    "alert_type": event.alert_type.value,
                    "error": str(e) or type(e).__name__
                }
            )

        metrics_collector.record_alert(channel.type, status)

        try:
            await self.store.record_alert(
                monitor_id=event.monitor.id,
                channel_id=channel.id,
                incident_id=event.incident_id,
                message=event.message,
                status=status
            )
        except Exception:
            logger.exception(
                "Failed to record alert history",
                extra={"channel_id": channel.id, "monitor_id": event.monitor.id}
            )

        return channel.id, status
