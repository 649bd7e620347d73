"""Pusher WebSocket fetcher — live gold-rate events, latest value on demand.

The upstream pushes a ``gold-rate-event`` on the ``gold-rate`` channel
whenever the rate changes. A background listener keeps the newest payload
and ``fetch()`` turns it into an Observation, so the poller can treat this
push source exactly like a polled one.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import structlog
import websockets
from websockets.asyncio.client import ClientConnection

from gold_monitor.core.config import SourceConfig
from gold_monitor.core.types import Observation
from gold_monitor.feeds.base import (
    BaseFetcher,
    extract_field,
    parse_decimal,
    parse_optional_decimal,
    parse_timestamp,
)
from gold_monitor.feeds.exceptions import FetchError, InvalidFetchError, TransientFetchError

logger = structlog.stdlib.get_logger()


def _subscribe_message(channel: str) -> str:
    return json.dumps({"event": "pusher:subscribe", "data": {"channel": channel}})


def _decode_event_data(data: Any) -> dict[str, Any] | None:
    """Pusher double-encodes ``data`` as a JSON string; accept both forms."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


class PusherFetcher(BaseFetcher):
    """Listens on a Pusher channel and serves the latest gold-rate payload.

    Reconnects after ``min(consecutive_errors, reconnect_cap_secs)`` seconds,
    so a clean disconnect reconnects immediately and a flapping upstream is
    retried at most every ``reconnect_cap_secs``.

    Usage::

        fetcher = PusherFetcher(settings.source)
        async with fetcher:
            obs = await fetcher.fetch()
    """

    def __init__(self, config: SourceConfig) -> None:
        super().__init__(source_tag=config.source_tag)
        self._config = config
        self._pusher = config.pusher
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._error_count = 0
        self._latest: Observation | None = None
        self._latest_error: FetchError | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def error_count(self) -> int:
        return self._error_count

    async def connect(self) -> None:
        """Start the background listener."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def close(self) -> None:
        """Stop the listener and close the socket."""
        self._running = False
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def fetch(self) -> Observation:
        """Return the newest payload received on the channel."""
        if self._latest_error is not None:
            raise self._latest_error
        if self._ws is None:
            raise TransientFetchError("Pusher socket is not connected")
        if self._latest is None:
            raise TransientFetchError("No gold-rate event received yet")
        return self._latest

    # ── Listener ────────────────────────────────────────────────

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self._session()
            except asyncio.CancelledError:
                break
            except Exception:
                if not self._running:
                    break
                self._error_count += 1
                logger.warning(
                    "pusher_reconnecting",
                    error_count=self._error_count,
                    exc_info=True,
                )

            delay = min(float(self._error_count), self._pusher.reconnect_cap_secs)
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                break

    async def _session(self) -> None:
        """Single connect-subscribe-listen session."""
        self._ws = await websockets.connect(self._pusher.ws_url)
        self._error_count = 0
        logger.info("pusher_connected", channel=self._pusher.channel)
        try:
            await self._ws.send(_subscribe_message(self._pusher.channel))
            async for raw in self._ws:
                if not self._running:
                    break
                await self._handle_message(raw)
        finally:
            if self._ws is not None:
                await self._ws.close()
                self._ws = None
            logger.info("pusher_disconnected", channel=self._pusher.channel)

    async def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("pusher_invalid_json", raw=str(raw)[:200])
            return
        if not isinstance(message, dict):
            return

        event = message.get("event")
        if event == "pusher:ping" and self._ws is not None:
            await self._ws.send(json.dumps({"event": "pusher:pong", "data": {}}))
            return
        if event != self._pusher.event:
            return

        self._ingest(message.get("data"), received_at=time.time())

    def _ingest(self, data: Any, received_at: float) -> None:
        """Turn a gold-rate payload into the latest Observation."""
        payload = _decode_event_data(data)
        try:
            if payload is None:
                raise InvalidFetchError("gold-rate event without an object payload")
            value = parse_decimal(
                extract_field(payload, self._config.value_field),
                self._config.thousands_separator,
            )
            timestamp = parse_timestamp(
                extract_field(payload, self._config.timestamp_field)
                if self._config.timestamp_field
                else None,
                fallback=received_at,
                naive_tz=self._config.naive_tzinfo,
            )
            secondary = parse_optional_decimal(
                payload, self._config.secondary_field, self._config.thousands_separator
            )
        except InvalidFetchError as exc:
            logger.warning("pusher_payload_invalid", error=str(exc))
            self._latest_error = exc
            return

        self._latest_error = None
        self._latest = Observation(
            timestamp=timestamp,
            value=value,
            source=self.source_tag,
            secondary_value=secondary,
        )
