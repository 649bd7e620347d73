"""Per-client rate limiting, probe blocking and the aiohttp middleware using them."""

from __future__ import annotations

import ipaddress
import time
from collections import deque
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import structlog
from aiohttp import web

from gold_monitor.core.config import ServerConfig

logger = structlog.stdlib.get_logger()

GUARD_KEY = "client_guard"

# Liveness is answered before any client check.
HEALTH_PATH = "/health"

# Monitoring endpoints are never rate limited (blocked clients are still refused).
EXEMPT_PATHS = frozenset({"/", "/api/status", "/metrics", "/ws"})

# Paths scanners probe for; any hit counts heavily towards a block.
SUSPICIOUS_PATHS = (
    "/admin", "/login", "/wp-admin", "/phpmyadmin", "/.env", "/config",
    "/administrator", "/wp-login", "/backup", "/.git",
    "/shell", "/cmd", "/exec", "/eval", "/passwd", "/etc",
)

_FAILED_ATTEMPT_WINDOW_SECS = 60.0
_CLEANUP_EVERY_SECS = 30.0


class RateStatus(StrEnum):
    """Verdict of the sliding-window limiter."""

    OK = "OK"
    LIMITED = "LIMITED"
    BLOCKED = "BLOCKED"


def _is_trusted(peer: str, trusted_proxies: list[str]) -> bool:
    try:
        address = ipaddress.ip_address(peer)
    except ValueError:
        return False
    return any(
        address in ipaddress.ip_network(entry, strict=False) for entry in trusted_proxies
    )


def client_ip(request: web.Request, trusted_proxies: list[str] | None = None) -> str:
    """Address the request is attributed to.

    The peer address, unless the peer is one of *trusted_proxies*; then the
    first ``X-Forwarded-For`` hop, else ``X-Real-IP``, else the peer.
    """
    peer = request.remote or "unknown"
    if not trusted_proxies or not _is_trusted(peer, trusted_proxies):
        return peer

    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return peer


def is_suspicious(path: str) -> bool:
    lowered = path.lower()
    return any(probe in lowered for probe in SUSPICIOUS_PATHS)


class ClientGuard:
    """Sliding-window request counts, failed-attempt tracking and temporary blocks."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or ServerConfig()
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._failed: dict[str, deque[float]] = {}
        self._blocked_until: dict[str, float] = {}
        self._last_cleanup = clock()

    @property
    def config(self) -> ServerConfig:
        return self._config

    def is_blocked(self, ip: str) -> bool:
        until = self._blocked_until.get(ip)
        if until is None:
            return False
        if self._clock() < until:
            return True
        del self._blocked_until[ip]
        self._failed.pop(ip, None)
        return False

    def block(self, ip: str, duration_secs: float) -> None:
        self._blocked_until[ip] = self._clock() + duration_secs
        logger.warning("client_blocked", ip=ip, duration_secs=duration_secs)

    def check_rate(self, ip: str) -> RateStatus:
        """Count one request from *ip*, refused ones included.

        Past ``rate_limit_max_requests`` in the window a client is LIMITED;
        a client still sending once ``rate_limit_block_requests`` are counted
        is BLOCKED.
        """
        now = self._clock()
        self._maybe_cleanup(now)

        window = self._requests.setdefault(ip, deque())
        _prune(window, now - self._config.rate_limit_window_secs)

        if len(window) >= self._config.rate_limit_block_requests:
            return RateStatus.BLOCKED
        window.append(now)
        if len(window) > self._config.rate_limit_max_requests:
            return RateStatus.LIMITED
        return RateStatus.OK

    def record_failed_attempt(self, ip: str, weight: int = 1) -> None:
        """Count *weight* failed attempts; enough of them within a minute block *ip*."""
        now = self._clock()
        attempts = self._failed.setdefault(ip, deque())
        attempts.extend([now] * weight)
        _prune(attempts, now - _FAILED_ATTEMPT_WINDOW_SECS)
        if len(attempts) >= self._config.max_failed_attempts:
            self.block(ip, self._config.failed_attempt_block_secs)

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < _CLEANUP_EVERY_SECS:
            return
        self._last_cleanup = now
        cutoff = now - self._config.rate_limit_window_secs
        for ip in list(self._requests):
            _prune(self._requests[ip], cutoff)
            if not self._requests[ip]:
                del self._requests[ip]


def _prune(window: deque[float], cutoff: float) -> None:
    while window and window[0] <= cutoff:
        window.popleft()


def _too_many_requests() -> web.Response:
    return web.Response(
        status=429,
        text="Too Many Requests",
        headers={"Retry-After": "60"},
    )


@web.middleware
async def security_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Refuse blocked clients, rate limit non-monitoring paths, trap probes.

    ``/health`` bypasses every check so liveness probes always succeed.
    """
    guard: ClientGuard | None = request.app.get(GUARD_KEY)
    path = request.path
    if guard is None or path == HEALTH_PATH:
        return await handler(request)

    ip = client_ip(request, guard.config.trusted_proxies)

    if guard.is_blocked(ip):
        return _too_many_requests()

    if path not in EXEMPT_PATHS:
        status = guard.check_rate(ip)
        if status == RateStatus.BLOCKED:
            guard.block(ip, guard.config.block_secs)
            return _too_many_requests()
        if status == RateStatus.LIMITED:
            return _too_many_requests()

    if is_suspicious(path):
        guard.record_failed_attempt(ip, weight=3)
        logger.info("suspicious_path", ip=ip, path=path)
        return web.json_response({"error": "forbidden"}, status=403)

    try:
        return await handler(request)
    except web.HTTPNotFound:
        guard.record_failed_attempt(ip, weight=1)
        return web.Response(status=404, text="Not Found")
