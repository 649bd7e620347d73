"""Build the configured fetcher."""

from __future__ import annotations

from gold_monitor.core.config import Settings
from gold_monitor.feeds.base import BaseFetcher
from gold_monitor.feeds.http import HttpJsonFetcher
from gold_monitor.feeds.pusher import PusherFetcher


def create_fetcher(settings: Settings) -> BaseFetcher:
    """Return the fetcher named by ``source.kind``."""
    if settings.source.kind == "http":
        return HttpJsonFetcher(
            settings.source,
            timeout_secs=settings.monitor.fetch_timeout_secs,
        )
    return PusherFetcher(settings.source)
