"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

from gold_monitor.core.config import AlertsConfig
from gold_monitor.monitor.channels import (
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
)
from gold_monitor.monitor.dispatcher import AlertDispatcher
from gold_monitor.monitor.metrics import MetricsCollector


def create_dispatcher(
    config: AlertsConfig,
    metrics: MetricsCollector | None = None,
) -> AlertDispatcher:
    """Build a dispatcher with every enabled channel."""
    channels: list[NotificationChannel] = []

    if config.webhook.enabled:
        channels.append(WebhookChannel(config.webhook))

    if config.telegram.enabled:
        channels.append(TelegramChannel(config.telegram))

    return AlertDispatcher(channels=channels, metrics=metrics)
