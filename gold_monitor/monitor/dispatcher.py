"""Central alert dispatcher — sends transitions to channels, retrying once."""

from __future__ import annotations

import structlog

from gold_monitor.core.types import Severity, Transition
from gold_monitor.monitor.channels import NotificationChannel
from gold_monitor.monitor.formatters import format_transition
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.types import AlertMessage

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes severity transitions to notification channels.

    - Every dispatched transition is logged via *decision_logger*.
    - Non-transitions and repeats of an already-notified severity are dropped.
    - A failed send is retried once per channel, then counted as a dispatch
      failure; nothing is queued for later cycles.
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._channels: list[NotificationChannel] = channels or []
        self._metrics = metrics
        self._last_notified: Severity | None = None

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    @property
    def last_notified(self) -> Severity | None:
        return self._last_notified

    # ── Callback entry point ────────────────────────────────────

    async def notify(self, transition: Transition) -> bool:
        """Dispatch *transition*. Returns False when it was dropped as a repeat."""
        if transition.previous == transition.current:
            return False
        if self._last_notified == transition.current:
            logger.debug("alert_duplicate_dropped", severity=transition.current.value)
            return False

        self._last_notified = transition.current
        msg = format_transition(transition)
        self._log_decision(msg)
        await self._dispatch_to_channels(msg)
        return True

    # ── Internal routing ────────────────────────────────────────

    def _log_decision(self, msg: AlertMessage) -> None:
        decision_logger.info(
            "decision",
            severity=msg.severity.value,
            title=msg.title,
            body=msg.body,
            source_event_type=msg.source_event_type,
            fields=msg.fields,
        )

    async def _dispatch_to_channels(self, msg: AlertMessage) -> None:
        for ch in self._channels:
            delivered = await self._send_with_retry(ch, msg)
            if self._metrics is not None:
                self._metrics.record_dispatch(success=delivered)

    async def _send_with_retry(self, ch: NotificationChannel, msg: AlertMessage) -> bool:
        for attempt in (1, 2):
            try:
                await ch.send(msg)
                return True
            except Exception as exc:
                logger.warning(
                    "alert_dispatch_attempt_failed",
                    channel=ch.name,
                    attempt=attempt,
                    title=msg.title,
                    error=str(exc),
                )
        logger.error("alert_dispatch_failed", channel=ch.name, title=msg.title)
        return False

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.name)
