"""Notification channels — generic webhook and Telegram delivery."""

from __future__ import annotations

import abc
from html import escape as html_escape

import aiohttp
import structlog

from gold_monitor.core.config import TelegramConfig, WebhookConfig
from gold_monitor.core.types import Severity
from gold_monitor.monitor.exceptions import DispatchError
from gold_monitor.monitor.types import AlertMessage

logger = structlog.get_logger(__name__)

_SEVERITY_EMOJI: dict[Severity, str] = {
    Severity.NOMINAL: "\U0001F7E2",   # green circle
    Severity.WARNING: "\U0001F7E0",   # orange circle
    Severity.CRITICAL: "\U0001F534",  # red circle
    Severity.UNKNOWN: "\u26AA",       # white circle
}


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> None:
        """Deliver an alert message.

        Raises:
            DispatchError: The sink is unreachable or rejected the message.
        """

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class _SessionChannel(NotificationChannel):
    """Shared lazy aiohttp session handling."""

    def __init__(self, timeout_secs: float = 10.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post_json(self, url: str, payload: dict, ok_statuses: tuple[int, ...]) -> None:
        try:
            session = self._get_session()
            async with session.post(url, json=payload) as resp:
                if resp.status in ok_statuses:
                    return
                body = await resp.text()
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise DispatchError(f"{self.name} unreachable: {exc!r}") from exc

        logger.warning(
            "channel_rejected",
            channel=self.name,
            status=resp.status,
            body=body[:200],
        )
        raise DispatchError(f"{self.name} rejected alert with status {resp.status}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class WebhookChannel(_SessionChannel):
    """POSTs the alert as JSON to a configured URL."""

    def __init__(self, config: WebhookConfig) -> None:
        super().__init__(timeout_secs=config.timeout_secs)
        self._url = config.url.get_secret_value()

    async def send(self, msg: AlertMessage) -> None:
        payload = {
            "severity": msg.severity.value,
            "title": msg.title,
            "body": msg.body,
            "fields": msg.fields,
            "event": msg.source_event_type,
            "timestamp": msg.timestamp,
        }
        await self._post_json(self._url, payload, ok_statuses=(200, 201, 202, 204))


class TelegramChannel(_SessionChannel):
    """Delivers alerts via the Telegram Bot API (HTML parse mode)."""

    def __init__(self, config: TelegramConfig) -> None:
        super().__init__()
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id

    async def send(self, msg: AlertMessage) -> None:
        emoji = _SEVERITY_EMOJI.get(msg.severity, "")
        text_parts = [f"{emoji} <b>[{msg.severity.value}] {html_escape(msg.title)}</b>"]
        if msg.body:
            text_parts.append(html_escape(msg.body))
        if msg.fields:
            lines = [
                f"  <code>{html_escape(k)}</code>: {html_escape(v)}"
                for k, v in msg.fields.items()
            ]
            text_parts.append("\n".join(lines))

        url = f"https://api.telegram.org/bot{self._token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": "\n".join(text_parts),
            "parse_mode": "HTML",
        }
        await self._post_json(url, payload, ok_statuses=(200,))
