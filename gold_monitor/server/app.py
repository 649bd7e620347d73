"""Read-only HTTP/WebSocket surface over the state store.

Exposes:
- ``GET /``             → minimal live status page (subscribes to ``/ws``)
- ``GET /health``       → ``ok``
- ``GET /api/status``   → current alert state as JSON
- ``GET /api/history``  → retained observations, oldest first (``?limit=N``)
- ``GET /metrics``      → Prometheus text exposition
- ``GET /api/metrics``  → the same counters as JSON
- ``GET /ws``           → status pushed on every commit, plus heartbeats
"""

from __future__ import annotations

import asyncio
import json
import time
import weakref
from decimal import Decimal
from collections.abc import Sequence
from typing import Any

import structlog
from aiohttp import WSCloseCode, WSMsgType, web

from gold_monitor.core.config import ServerConfig
from gold_monitor.core.types import Observation, Severity
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.poller import Poller
from gold_monitor.monitor.store import StateStore, StoreSnapshot
from gold_monitor.server.broadcast import StatusBroadcaster
from gold_monitor.server.security import GUARD_KEY, ClientGuard, security_middleware

logger = structlog.stdlib.get_logger()

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


class _DecimalEncoder(json.JSONEncoder):
    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        return super().default(o)


def dumps(data: Any) -> str:
    return json.dumps(data, cls=_DecimalEncoder)


def _direction(diff: Decimal) -> str:
    if diff > 0:
        return "up"
    if diff < 0:
        return "down"
    return "flat"


def _observation_json(obs: Observation, previous: Observation | None = None) -> dict[str, Any]:
    """One observation plus its change against *previous* (flat when there is none)."""
    diff = obs.value - previous.value if previous is not None else Decimal(0)
    return {
        "timestamp": obs.timestamp,
        "value": obs.value,
        "secondary_value": obs.secondary_value,
        "source": obs.source,
        "diff": diff,
        "direction": _direction(diff),
    }


def history_json(history: Sequence[Observation]) -> list[dict[str, Any]]:
    """Observations oldest first, each diffed against the one stored before it."""
    items: list[dict[str, Any]] = []
    previous: Observation | None = None
    for obs in history:
        items.append(_observation_json(obs, previous))
        previous = obs
    return items


def build_status(snapshot: StoreSnapshot, poller: Poller | None = None) -> dict[str, Any]:
    """Status document served by ``/api/status`` and pushed over ``/ws``."""
    state = snapshot.state
    latest = snapshot.latest
    previous = snapshot.history[-2] if len(snapshot.history) > 1 else None
    stale = state.severity == Severity.UNKNOWN
    if poller is not None:
        stale = stale or poller.stale
    return {
        "severity": state.severity.value,
        "since": state.since,
        "last_value": state.last_value,
        "last_observation": _observation_json(latest, previous) if latest is not None else None,
        "last_observation_age_secs": (
            round(time.time() - latest.timestamp, 3) if latest is not None else None
        ),
        "stale": stale,
        "missed_cycles": poller.missed_cycles if poller is not None else 0,
        "phase": poller.phase.value if poller is not None else None,
        "history_size": len(snapshot.history),
        "timestamp": time.time(),
    }


STATUS_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Gold Monitor</title>
<style>
  body { font-family: monospace; background: #0a0e17; color: #e2e8f0; padding: 24px; }
  h1 { font-size: 1.2rem; color: #fbbf24; letter-spacing: 2px; }
  .sev { font-size: 2rem; font-weight: 700; margin: 16px 0; }
  .NOMINAL { color: #34d399; } .WARNING { color: #fbbf24; }
  .CRITICAL { color: #f87171; } .UNKNOWN { color: #64748b; }
  .dim { color: #64748b; font-size: 0.75rem; }
</style>
</head>
<body>
<h1>GOLD MONITOR</h1>
<div id="sev" class="sev UNKNOWN">UNKNOWN</div>
<div>Last value: <span id="value">-</span></div>
<div class="dim">Since <span id="since">-</span> &middot; missed cycles <span id="missed">0</span></div>
<div class="dim" id="conn">connecting...</div>
<script>
function render(s) {
  const sev = document.getElementById('sev');
  sev.textContent = s.severity;
  sev.className = 'sev ' + s.severity;
  document.getElementById('value').textContent =
    s.last_value === null ? '-' : Number(s.last_value).toLocaleString('id-ID');
  document.getElementById('since').textContent =
    s.since ? new Date(s.since * 1000).toLocaleString() : '-';
  document.getElementById('missed').textContent = s.missed_cycles;
}
function connect() {
  const proto = location.protocol === 'https:' ? 'wss://' : 'ws://';
  const ws = new WebSocket(proto + location.host + '/ws');
  const conn = document.getElementById('conn');
  ws.onopen = () => { conn.textContent = 'live'; };
  ws.onmessage = (ev) => {
    const data = JSON.parse(ev.data);
    if (!data.ping) render(data);
  };
  ws.onclose = () => { conn.textContent = 'reconnecting...'; setTimeout(connect, 3000); };
}
fetch('/api/status').then(r => r.json()).then(render).finally(connect);
</script>
</body>
</html>"""


# ── Handlers ────────────────────────────────────────────────────


def _compressed(resp: web.Response) -> web.Response:
    resp.enable_compression()
    return resp


async def _handle_index(request: web.Request) -> web.Response:
    return _compressed(web.Response(text=STATUS_HTML, content_type="text/html"))


async def _handle_health(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def _handle_status(request: web.Request) -> web.Response:
    store: StateStore = request.app["store"]
    poller: Poller | None = request.app.get("poller")
    return _compressed(web.json_response(build_status(store.snapshot(), poller), dumps=dumps))


async def _handle_history(request: web.Request) -> web.Response:
    store: StateStore = request.app["store"]
    history = history_json(store.history())
    raw_limit = request.query.get("limit")
    if raw_limit is not None:
        try:
            limit = int(raw_limit)
        except ValueError:
            return web.json_response({"error": "limit must be an integer"}, status=400)
        if limit < 0:
            return web.json_response({"error": "limit must be non-negative"}, status=400)
        history = history[-limit:] if limit else []
    data = {
        "count": len(history),
        "observations": history,
    }
    return _compressed(web.json_response(data, dumps=dumps))


async def _handle_metrics(request: web.Request) -> web.Response:
    metrics: MetricsCollector = request.app["metrics"]
    store: StateStore = request.app["store"]
    return web.Response(
        text=metrics.render_prometheus(store.snapshot()),
        headers={"Content-Type": PROMETHEUS_CONTENT_TYPE},
    )


async def _handle_api_metrics(request: web.Request) -> web.Response:
    metrics: MetricsCollector = request.app["metrics"]
    store: StateStore = request.app["store"]
    return _compressed(web.json_response(metrics.summary(store.snapshot()), dumps=dumps))


async def _handle_ws(request: web.Request) -> web.StreamResponse:
    broadcaster: StatusBroadcaster = request.app["broadcaster"]
    queue = broadcaster.subscribe()
    if queue is None:
        return web.Response(status=503, text="Too many connections")

    ws = web.WebSocketResponse()
    try:
        await ws.prepare(request)
    except Exception:
        broadcaster.unsubscribe(queue)
        raise

    sockets: weakref.WeakSet[web.WebSocketResponse] = request.app["websockets"]
    sockets.add(ws)
    store: StateStore = request.app["store"]
    poller: Poller | None = request.app.get("poller")

    reader = asyncio.create_task(_drain_client(ws))
    try:
        await ws.send_str(dumps(build_status(store.snapshot(), poller)))
        while not ws.closed:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, reader}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                break
            payload = getter.result()
            if payload is None:
                break
            await ws.send_str(payload)
    except ConnectionResetError:
        logger.debug("ws_client_gone")
    finally:
        broadcaster.unsubscribe(queue)
        reader.cancel()
        sockets.discard(ws)
        if not ws.closed:
            await ws.close()
    return ws


async def _drain_client(ws: web.WebSocketResponse) -> None:
    """Consume client frames until the socket closes; clients never send commands."""
    async for msg in ws:
        if msg.type == WSMsgType.ERROR:
            logger.debug("ws_client_error", error=str(ws.exception()))
            break


async def _close_websockets(app: web.Application) -> None:
    for ws in set(app["websockets"]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")


# ── Application ─────────────────────────────────────────────────


def create_web_app(
    store: StateStore,
    metrics: MetricsCollector,
    broadcaster: StatusBroadcaster,
    poller: Poller | None = None,
    config: ServerConfig | None = None,
) -> web.Application:
    """Create the aiohttp web application."""
    config = config or ServerConfig()
    app = web.Application(middlewares=[security_middleware])
    app["store"] = store
    app["metrics"] = metrics
    app["broadcaster"] = broadcaster
    app["poller"] = poller
    app["websockets"] = weakref.WeakSet()
    app[GUARD_KEY] = ClientGuard(config)
    app.on_shutdown.append(_close_websockets)
    app.router.add_get("/", _handle_index)
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/api/status", _handle_status)
    app.router.add_get("/api/history", _handle_history)
    app.router.add_get("/metrics", _handle_metrics)
    app.router.add_get("/api/metrics", _handle_api_metrics)
    app.router.add_get("/ws", _handle_ws)
    return app


async def start_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 10000,
    shutdown_grace_secs: float = 5.0,
) -> web.AppRunner:
    """Start serving *app*. Returns the runner for cleanup.

    Raises OSError when the address cannot be bound.
    """
    runner = web.AppRunner(app, shutdown_timeout=shutdown_grace_secs, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
    except OSError:
        await runner.cleanup()
        raise
    logger.info("server_listening", host=host, port=port)
    return runner
