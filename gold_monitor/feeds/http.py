"""HTTP JSON fetcher — GETs a JSON document and reads one numeric field."""

from __future__ import annotations

import time

import httpx
import structlog

from gold_monitor.core.config import SourceConfig
from gold_monitor.core.types import Observation
from gold_monitor.feeds.base import (
    BaseFetcher,
    extract_field,
    parse_decimal,
    parse_optional_decimal,
    parse_timestamp,
)
from gold_monitor.feeds.exceptions import InvalidFetchError, TransientFetchError

logger = structlog.stdlib.get_logger()

# Statuses worth another attempt; every other 4xx means the request itself is wrong.
_RETRYABLE_STATUS = frozenset({408, 425, 429})


class HttpJsonFetcher(BaseFetcher):
    """Polls ``source.url`` and extracts ``source.value_field``.

    Usage::

        fetcher = HttpJsonFetcher(settings.source)
        async with fetcher:
            obs = await fetcher.fetch()
    """

    def __init__(self, config: SourceConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(source_tag=config.source_tag)
        self._config = config
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client."""
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout_secs),
            headers=self._config.headers,
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def fetch(self) -> Observation:
        """GET the source URL and parse one Observation from the JSON body."""
        if self._http is None:
            raise TransientFetchError("HTTP client not connected")

        try:
            response = await self._http.get(self._config.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status >= 500 or status in _RETRYABLE_STATUS:
                raise TransientFetchError(f"Source returned {status}") from exc
            raise InvalidFetchError(f"Source returned {status}") from exc
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Source request failed: {exc!r}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidFetchError("Source returned invalid JSON") from exc

        return self._parse_body(body, received_at=time.time())

    def _parse_body(self, body: object, received_at: float) -> Observation:
        raw_value = extract_field(body, self._config.value_field)
        if raw_value is None:
            logger.warning(
                "source_field_missing",
                field=self._config.value_field,
                keys=list(body.keys()) if isinstance(body, dict) else None,
            )
            raise InvalidFetchError(f"Field {self._config.value_field!r} missing")

        value = parse_decimal(raw_value, self._config.thousands_separator)
        secondary = parse_optional_decimal(
            body, self._config.secondary_field, self._config.thousands_separator
        )
        timestamp = received_at
        if self._config.timestamp_field:
            timestamp = parse_timestamp(
                extract_field(body, self._config.timestamp_field),
                fallback=received_at,
                naive_tz=self._config.naive_tzinfo,
            )

        return Observation(
            timestamp=timestamp,
            value=value,
            source=self.source_tag,
            secondary_value=secondary,
        )
