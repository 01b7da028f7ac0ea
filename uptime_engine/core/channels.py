"""Channel-specific senders for alert delivery.

Each supported ``ChannelKind`` has exactly one sender class. A sender takes
the rendered event and the channel's own configuration blob, builds the
destination-specific payload and posts it. Any problem is raised as an
``AlertDeliveryError`` subclass; the dispatcher turns it into a ``failed``
history entry.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

import aiohttp

from uptime_engine.config import AlertsConfig
from uptime_engine.core.exceptions import ChannelConfigError, ChannelDeliveryError
from uptime_engine.models.enums import AlertType, ChannelKind
from uptime_engine.schemas.monitor import MonitorSnapshot

DOWN_COLOR_HEX = "#dc2626"
RECOVERY_COLOR_HEX = "#16a34a"
DOWN_COLOR_INT = 0xDC2626
RECOVERY_COLOR_INT = 0x16A34A

DOWN_TITLE = "🔴 Monitor Down"
RECOVERY_TITLE = "🟢 Monitor Recovered"


class AlertEvent:
    """One state transition, rendered once and shared by every channel."""

    def __init__(
        self,
        monitor: MonitorSnapshot,
        incident_id: Optional[int],
        alert_type: AlertType,
        message: str,
        timestamp: Optional[datetime] = None,
        html_message: Optional[str] = None
    ):
        self.monitor = monitor
        self.incident_id = incident_id
        self.alert_type = alert_type
        self.message = message
        # Same text with values escaped for HTML parse mode
        self.html_message = html_message if html_message is not None else message
        self.timestamp = timestamp or datetime.utcnow()

    @property
    def is_down(self) -> bool:
        return self.alert_type == AlertType.DOWN

    @property
    def title(self) -> str:
        return DOWN_TITLE if self.is_down else RECOVERY_TITLE

    @property
    def iso_timestamp(self) -> str:
        return self.timestamp.isoformat() + "Z"


def _require(config: Dict[str, Any], key: str) -> str:
    value = config.get(key)
    if not value:
        raise ChannelConfigError(f"{key} not configured")
    return str(value)


class ChannelSender:
    """Base class for channel senders."""

    kind: ChannelKind

    def __init__(self, config: AlertsConfig):
        self.config = config

    async def send(
        self,
        session: aiohttp.ClientSession,
        event: AlertEvent,
        channel_config: Dict[str, Any]
    ) -> None:
        raise NotImplementedError

    async def _post_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        include_body: bool = False
    ) -> None:
        """POST a JSON payload and raise on any non-2xx response."""
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        async with session.post(url, json=payload, headers=request_headers) as response:
            if 200 <= response.status < 300:
                return
            detail = ""
            if include_body:
                detail = " " + (await response.text())[:200]
            raise ChannelDeliveryError(
                f"{self.kind.value} delivery error: {response.status}{detail}",
                status=response.status
            )


class TelegramSender(ChannelSender):
    """Chat bot: rich-text message through the bot API."""

    kind = ChannelKind.TELEGRAM

    async def send(self, session, event, channel_config):
        bot_token = self.config.telegram_bot_token
        if not bot_token:
            raise ChannelConfigError("TELEGRAM_BOT_TOKEN not set")
        chat_id = _require(channel_config, "chatId")

        await self._post_json(
            session,
            f"{self.config.telegram_api_base.rstrip('/')}/bot{bot_token}/sendMessage",
            {
                "chat_id": chat_id,
                "text": event.html_message,
                "parse_mode": "HTML",
            },
            include_body=True
        )


class SlackSender(ChannelSender):
    """Block-based team webhook."""

    kind = ChannelKind.SLACK

    def build_payload(self, event: AlertEvent) -> Dict[str, Any]:
        return {
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": event.title},
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Monitor:*\n{event.monitor.name}"},
                        {"type": "mrkdwn", "text": f"*URL:*\n{event.monitor.url}"},
                    ],
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": event.message},
                },
            ],
            "attachments": [
                {"color": DOWN_COLOR_HEX if event.is_down else RECOVERY_COLOR_HEX, "text": ""}
            ],
        }

    async def send(self, session, event, channel_config):
        webhook_url = _require(channel_config, "webhookUrl")
        await self._post_json(session, webhook_url, self.build_payload(event))


class DiscordSender(ChannelSender):
    """Embed-based team webhook."""

    kind = ChannelKind.DISCORD

    def build_payload(self, event: AlertEvent) -> Dict[str, Any]:
        return {
            "embeds": [
                {
                    "title": event.title,
                    "description": event.message,
                    "color": DOWN_COLOR_INT if event.is_down else RECOVERY_COLOR_INT,
                    "fields": [
                        {"name": "Monitor", "value": event.monitor.name, "inline": True},
                        {"name": "URL", "value": event.monitor.url, "inline": True},
                    ],
                    "timestamp": event.iso_timestamp,
                }
            ]
        }

    async def send(self, session, event, channel_config):
        webhook_url = _require(channel_config, "webhookUrl")
        await self._post_json(session, webhook_url, self.build_payload(event))


class EmailSender(ChannelSender):
    """Email through the mail provider's HTTP API."""

    kind = ChannelKind.EMAIL

    @staticmethod
    def subject(event: AlertEvent) -> str:
        if event.is_down:
            return f"🔴 DOWN: {event.monitor.name} is not responding"
        return f"🟢 RECOVERED: {event.monitor.name} is back up"

    async def send(self, session, event, channel_config):
        api_key = self.config.resend_api_key
        if not api_key:
            raise ChannelConfigError("RESEND_API_KEY not set")
        email = _require(channel_config, "email")

        await self._post_json(
            session,
            self.config.resend_api_url,
            {
                "from": self.config.email_from,
                "to": [email],
                "subject": self.subject(event),
                "text": event.message,
            },
            headers={"Authorization": f"Bearer {api_key}"},
            include_body=True
        )


class WebhookSender(ChannelSender):
    """Generic webhook receiving a structured JSON envelope."""

    kind = ChannelKind.WEBHOOK

    def build_payload(self, event: AlertEvent) -> Dict[str, Any]:
        return {
            "type": event.alert_type.value,
            "monitor": {
                "id": event.monitor.id,
                "name": event.monitor.name,
                "url": event.monitor.url,
            },
            "incidentId": event.incident_id,
            "message": event.message,
            "timestamp": event.iso_timestamp,
        }

    async def send(self, session, event, channel_config):
        url = _require(channel_config, "url")
        await self._post_json(
            session,
            url,
            self.build_payload(event),
            headers={"User-Agent": self.config.webhook_user_agent}
        )


_SENDER_CLASSES = (TelegramSender, SlackSender, DiscordSender, EmailSender, WebhookSender)

CHANNEL_SENDERS: Dict[ChannelKind, Type[ChannelSender]] = {
    sender.kind: sender for sender in _SENDER_CLASSES
}

if len(_SENDER_CLASSES) != len(CHANNEL_SENDERS) or set(CHANNEL_SENDERS) != set(ChannelKind):
    raise RuntimeError(
        "Every ChannelKind needs exactly one sender; "
        f"covered={sorted(k.value for k in CHANNEL_SENDERS)}"
    )


def resolve_kind(channel_type: str) -> ChannelKind:
    """Map a stored channel type string to its kind."""
    try:
        return ChannelKind(channel_type)
    except ValueError:
        raise ChannelConfigError(f"Unknown channel type: {channel_type}") from None
