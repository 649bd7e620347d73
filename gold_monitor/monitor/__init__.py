"""Monitoring core — evaluation, state, polling, alerting and metrics."""

from gold_monitor.monitor.channels import NotificationChannel, TelegramChannel, WebhookChannel
from gold_monitor.monitor.dispatcher import AlertDispatcher
from gold_monitor.monitor.evaluator import classify, detect_transition, evaluate
from gold_monitor.monitor.exceptions import DispatchError
from gold_monitor.monitor.factory import create_dispatcher
from gold_monitor.monitor.formatters import format_grouped, format_transition
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.poller import Poller, backoff_delay
from gold_monitor.monitor.store import StateStore, StoreSnapshot
from gold_monitor.monitor.types import AlertMessage

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "DispatchError",
    "MetricsCollector",
    "NotificationChannel",
    "Poller",
    "StateStore",
    "StoreSnapshot",
    "TelegramChannel",
    "WebhookChannel",
    "backoff_delay",
    "classify",
    "create_dispatcher",
    "detect_transition",
    "evaluate",
    "format_grouped",
    "format_transition",
]
