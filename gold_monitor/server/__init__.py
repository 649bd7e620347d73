"""HTTP/WebSocket status server."""

from gold_monitor.server.app import build_status, create_web_app, start_server
from gold_monitor.server.broadcast import StatusBroadcaster
from gold_monitor.server.security import ClientGuard, RateStatus, client_ip, security_middleware

__all__ = [
    "ClientGuard",
    "RateStatus",
    "StatusBroadcaster",
    "build_status",
    "client_ip",
    "create_web_app",
    "security_middleware",
    "start_server",
]
