"""Fetchers — external sources of the monitored quantity."""

from gold_monitor.feeds.base import (
    BaseFetcher,
    extract_field,
    parse_decimal,
    parse_optional_decimal,
    parse_timestamp,
)
from gold_monitor.feeds.exceptions import (
    FetchError,
    FetchErrorKind,
    InvalidFetchError,
    TransientFetchError,
)
from gold_monitor.feeds.factory import create_fetcher
from gold_monitor.feeds.http import HttpJsonFetcher
from gold_monitor.feeds.pusher import PusherFetcher

__all__ = [
    "BaseFetcher",
    "FetchError",
    "FetchErrorKind",
    "HttpJsonFetcher",
    "InvalidFetchError",
    "PusherFetcher",
    "TransientFetchError",
    "create_fetcher",
    "extract_field",
    "parse_decimal",
    "parse_optional_decimal",
    "parse_timestamp",
]
