"""MetricsCollector — counters for the poll loop and the alert pipeline.

Counters are bumped by the poller and the dispatcher; gauges (severity,
last value, observation age, history size) are read from a store snapshot
at render time so they can never drift from the store.
"""

from __future__ import annotations

import time
from collections import Counter

from gold_monitor.core.types import Severity
from gold_monitor.feeds.exceptions import FetchErrorKind
from gold_monitor.monitor.store import StoreSnapshot

_PREFIX = "gold_monitor"


class MetricsCollector:
    """Process-lifetime counters.

    Usage::

        metrics = MetricsCollector()
        metrics.record_fetch_failure(FetchErrorKind.TRANSIENT)
        text = metrics.render_prometheus(store.snapshot())
    """

    def __init__(self) -> None:
        self.started_at = time.time()
        self.fetches_total = 0
        self.fetch_attempts_total = 0
        self.fetch_failures: Counter[FetchErrorKind] = Counter()
        self.observations_recorded_total = 0
        self.duplicate_observations_total = 0
        self.missed_cycles_total = 0
        self.cycle_errors_total = 0
        self.transitions_total = 0
        self.transitions_by_target: Counter[Severity] = Counter()
        self.alerts_dispatched_total = 0
        self.dispatch_failures_total = 0

    # ── Recording ───────────────────────────────────────────────

    def record_fetch_attempt(self) -> None:
        self.fetch_attempts_total += 1

    def record_fetch_success(self, *, recorded: bool) -> None:
        self.fetches_total += 1
        if recorded:
            self.observations_recorded_total += 1
        else:
            self.duplicate_observations_total += 1

    def record_fetch_failure(self, kind: FetchErrorKind) -> None:
        self.fetch_failures[kind] += 1

    def record_missed_cycle(self) -> None:
        self.missed_cycles_total += 1

    def record_cycle_error(self) -> None:
        self.cycle_errors_total += 1

    def record_transition(self, target: Severity) -> None:
        self.transitions_total += 1
        self.transitions_by_target[target] += 1

    def record_dispatch(self, *, success: bool) -> None:
        if success:
            self.alerts_dispatched_total += 1
        else:
            self.dispatch_failures_total += 1

    # ── Query methods ───────────────────────────────────────────

    def summary(self, snapshot: StoreSnapshot | None = None) -> dict[str, object]:
        """Return every counter, plus gauges when a snapshot is given."""
        data: dict[str, object] = {
            "uptime_secs": round(time.time() - self.started_at, 3),
            "fetches_total": self.fetches_total,
            "fetch_attempts_total": self.fetch_attempts_total,
            "fetch_failures": {
                kind.value: self.fetch_failures[kind] for kind in FetchErrorKind
            },
            "observations_recorded_total": self.observations_recorded_total,
            "duplicate_observations_total": self.duplicate_observations_total,
            "missed_cycles_total": self.missed_cycles_total,
            "cycle_errors_total": self.cycle_errors_total,
            "transitions_total": self.transitions_total,
            "transitions_by_target": {
                sev.value: self.transitions_by_target[sev] for sev in Severity
            },
            "alerts_dispatched_total": self.alerts_dispatched_total,
            "dispatch_failures_total": self.dispatch_failures_total,
        }
        if snapshot is not None:
            data.update(_gauges(snapshot))
        return data

    def render_prometheus(self, snapshot: StoreSnapshot | None = None) -> str:
        """Render the metrics in the Prometheus text exposition format."""
        lines: list[str] = []

        def metric(name: str, mtype: str, help_text: str, samples: list[tuple[str, object]]) -> None:
            full = f"{_PREFIX}_{name}"
            lines.append(f"# HELP {full} {help_text}")
            lines.append(f"# TYPE {full} {mtype}")
            for labels, value in samples:
                lines.append(f"{full}{labels} {value}")

        metric("fetches_total", "counter", "Successful fetches.", [("", self.fetches_total)])
        metric(
            "fetch_attempts_total", "counter", "Fetch attempts including retries.",
            [("", self.fetch_attempts_total)],
        )
        metric(
            "fetch_failures_total", "counter", "Failed fetch attempts by kind.",
            [(f'{{kind="{k.value}"}}', self.fetch_failures[k]) for k in FetchErrorKind],
        )
        metric(
            "observations_recorded_total", "counter", "Observations stored.",
            [("", self.observations_recorded_total)],
        )
        metric(
            "duplicate_observations_total", "counter", "Fetched observations already stored.",
            [("", self.duplicate_observations_total)],
        )
        metric(
            "missed_cycles_total", "counter", "Poll cycles without a successful fetch.",
            [("", self.missed_cycles_total)],
        )
        metric(
            "cycle_errors_total", "counter", "Poll cycles aborted by an unexpected error.",
            [("", self.cycle_errors_total)],
        )
        metric(
            "transitions_total", "counter", "Severity transitions by target severity.",
            [(f'{{to="{s.value}"}}', self.transitions_by_target[s]) for s in Severity],
        )
        metric(
            "alerts_dispatched_total", "counter", "Alerts delivered to a channel.",
            [("", self.alerts_dispatched_total)],
        )
        metric(
            "dispatch_failures_total", "counter", "Alerts a channel failed to take after a retry.",
            [("", self.dispatch_failures_total)],
        )

        if snapshot is not None:
            gauges = _gauges(snapshot)
            current = snapshot.state.severity
            metric(
                "severity", "gauge", "1 for the current severity.",
                [(f'{{severity="{s.value}"}}', int(s == current)) for s in Severity],
            )
            if gauges["last_value"] is not None:
                metric("last_value", "gauge", "Latest observed value.", [("", gauges["last_value"])])
            if gauges["last_observation_age_secs"] is not None:
                metric(
                    "last_observation_age_secs", "gauge", "Seconds since the latest observation.",
                    [("", gauges["last_observation_age_secs"])],
                )
            metric("history_size", "gauge", "Observations held in memory.", [("", gauges["history_size"])])

        return "\n".join(lines) + "\n"


def _gauges(snapshot: StoreSnapshot) -> dict[str, object]:
    latest = snapshot.latest
    return {
        "severity": snapshot.state.severity.value,
        "last_value": str(latest.value) if latest is not None else None,
        "last_observation_age_secs": (
            round(time.time() - latest.timestamp, 3) if latest is not None else None
        ),
        "history_size": len(snapshot.history),
    }
