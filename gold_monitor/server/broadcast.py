"""Fan-out of status payloads to WebSocket subscribers."""

from __future__ import annotations

import asyncio

import structlog

logger = structlog.stdlib.get_logger()

PING_PAYLOAD = '{"ping":true}'

# Per-subscriber backlog; a slow client loses the oldest payloads, not the newest.
_QUEUE_SIZE = 16


class StatusBroadcaster:
    """Pushes the latest status to every subscriber queue, plus heartbeats.

    Usage::

        broadcaster = StatusBroadcaster(max_connections=500, heartbeat_secs=15)
        await broadcaster.start()
        queue = broadcaster.subscribe()
        broadcaster.publish(payload)
    """

    def __init__(self, max_connections: int = 500, heartbeat_secs: float = 15.0) -> None:
        self._max_connections = max_connections
        self._heartbeat_secs = heartbeat_secs
        self._subscribers: set[asyncio.Queue[str | None]] = set()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[str | None] | None:
        """Return a new subscriber queue, or None when at capacity."""
        if len(self._subscribers) >= self._max_connections:
            logger.warning("ws_capacity_reached", max_connections=self._max_connections)
            return None
        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str | None]) -> None:
        self._subscribers.discard(queue)

    def publish(self, payload: str) -> None:
        """Queue *payload* for every subscriber without blocking."""
        for queue in self._subscribers:
            _put_latest(queue, payload)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._heartbeat_loop())

    async def close(self) -> None:
        """Stop heartbeats and tell every subscriber to hang up."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for queue in self._subscribers:
            _put_latest(queue, None)

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._heartbeat_secs)
            except asyncio.CancelledError:
                break
            if self._subscribers:
                self.publish(PING_PAYLOAD)


def _put_latest(queue: asyncio.Queue[str | None], item: str | None) -> None:
    while True:
        try:
            queue.put_nowait(item)
            return
        except asyncio.QueueFull:
            queue.get_nowait()
