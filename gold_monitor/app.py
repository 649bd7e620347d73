"""Process entrypoint — wires fetcher, poller, alerting and server, runs until signalled.

Usage::

    # Run with default config
    gold-monitor

    # Custom config file
    gold-monitor --config config/settings.yaml

    # Override log level
    gold-monitor --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from gold_monitor.core.config import load_settings
from gold_monitor.core.exceptions import ConfigError
from gold_monitor.core.logging import setup_logging
from gold_monitor.feeds.factory import create_fetcher
from gold_monitor.monitor.factory import create_dispatcher
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.poller import Poller
from gold_monitor.monitor.store import StateStore, StoreSnapshot
from gold_monitor.server.app import build_status, create_web_app, dumps, start_server
from gold_monitor.server.broadcast import StatusBroadcaster

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_BIND_ERROR = 2


async def run(args: argparse.Namespace) -> int:
    """Start all components and run until interrupted."""
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    setup_logging(level=args.log_level)

    logger.info(
        "monitor_starting",
        source=settings.source.kind,
        poll_interval_secs=settings.monitor.poll_interval_secs,
        direction=settings.monitor.thresholds.direction.value,
        warning=str(settings.monitor.thresholds.warning),
        critical=str(settings.monitor.thresholds.critical),
        port=settings.server.port,
    )

    # ── Core pipeline ────────────────────────────────────────────
    fetcher = create_fetcher(settings)
    store = StateStore(settings.monitor.retention_size)
    metrics = MetricsCollector()
    dispatcher = create_dispatcher(settings.alerts, metrics=metrics)
    poller = Poller(fetcher, store, settings.monitor, dispatcher=dispatcher, metrics=metrics)

    # ── Status push ──────────────────────────────────────────────
    broadcaster = StatusBroadcaster(
        max_connections=settings.server.max_ws_connections,
        heartbeat_secs=settings.server.heartbeat_secs,
    )

    def _publish(snapshot: StoreSnapshot) -> None:
        broadcaster.publish(dumps(build_status(snapshot, poller)))

    poller.on_commit(_publish)

    # ── Server ───────────────────────────────────────────────────
    web_app = create_web_app(
        store,
        metrics,
        broadcaster,
        poller=poller,
        config=settings.server,
    )
    try:
        runner = await start_server(
            web_app,
            host=settings.server.host,
            port=settings.server.port,
            shutdown_grace_secs=settings.server.shutdown_grace_secs,
        )
    except OSError as exc:
        logger.error(
            "server_bind_failed",
            host=settings.server.host,
            port=settings.server.port,
            error=str(exc),
        )
        await dispatcher.close()
        return EXIT_BIND_ERROR

    # ── Start everything ─────────────────────────────────────────
    await fetcher.connect()
    await broadcaster.start()
    await poller.start()
    logger.info("monitor_running", channels=len(dispatcher.channels))

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("monitor_shutting_down")

    await poller.stop(grace_secs=settings.server.shutdown_grace_secs)
    await broadcaster.close()
    await runner.cleanup()
    await dispatcher.close()
    try:
        await fetcher.close()
    except Exception:
        logger.exception("fetcher_close_error")

    # ── Final summary ────────────────────────────────────────────
    summary = metrics.summary(store.snapshot())
    logger.info(
        "monitor_stopped",
        fetches_total=summary["fetches_total"],
        missed_cycles_total=summary["missed_cycles_total"],
        transitions_total=summary["transitions_total"],
        severity=summary["severity"],
    )

    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Poll the gold rate, alert on threshold crossings, serve status.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: $GOLD_MONITOR_CONFIG or config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()
    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
