"""Tests for MetricsCollector — counters, summary, Prometheus rendering."""

from __future__ import annotations

import time
from decimal import Decimal

from gold_monitor.core.types import AlertState, Observation, Severity
from gold_monitor.feeds.exceptions import FetchErrorKind
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.store import StoreSnapshot


def _snapshot(value: int | None = 150, severity: Severity = Severity.WARNING) -> StoreSnapshot:
    history: tuple[Observation, ...] = ()
    if value is not None:
        history = (Observation(timestamp=time.time() - 2, value=Decimal(value)),)
    return StoreSnapshot(
        history=history,
        state=AlertState(severity=severity, last_value=Decimal(value) if value else None),
        commits=1,
    )


# ── Counters ────────────────────────────────────────────────────


class TestCounters:
    def test_fetch_counters(self) -> None:
        m = MetricsCollector()
        m.record_fetch_attempt()
        m.record_fetch_attempt()
        m.record_fetch_failure(FetchErrorKind.TRANSIENT)
        m.record_fetch_success(recorded=True)
        m.record_fetch_success(recorded=False)
        assert m.fetch_attempts_total == 2
        assert m.fetches_total == 2
        assert m.observations_recorded_total == 1
        assert m.duplicate_observations_total == 1
        assert m.fetch_failures[FetchErrorKind.TRANSIENT] == 1

    def test_transition_counters(self) -> None:
        m = MetricsCollector()
        m.record_transition(Severity.WARNING)
        m.record_transition(Severity.CRITICAL)
        m.record_transition(Severity.WARNING)
        assert m.transitions_total == 3
        assert m.transitions_by_target[Severity.WARNING] == 2

    def test_dispatch_counters(self) -> None:
        m = MetricsCollector()
        m.record_dispatch(success=True)
        m.record_dispatch(success=False)
        assert m.alerts_dispatched_total == 1
        assert m.dispatch_failures_total == 1


# ── Summary ─────────────────────────────────────────────────────


class TestSummary:
    def test_without_snapshot(self) -> None:
        m = MetricsCollector()
        m.record_missed_cycle()
        s = m.summary()
        assert s["missed_cycles_total"] == 1
        assert s["fetch_failures"] == {"transient": 0, "invalid": 0}
        assert "severity" not in s

    def test_with_snapshot(self) -> None:
        s = MetricsCollector().summary(_snapshot())
        assert s["severity"] == "WARNING"
        assert s["last_value"] == "150"
        assert s["history_size"] == 1
        assert s["last_observation_age_secs"] >= 2

    def test_empty_snapshot(self) -> None:
        s = MetricsCollector().summary(_snapshot(value=None, severity=Severity.UNKNOWN))
        assert s["last_value"] is None
        assert s["last_observation_age_secs"] is None


# ── Prometheus ──────────────────────────────────────────────────


class TestPrometheus:
    def test_counters_rendered(self) -> None:
        m = MetricsCollector()
        m.record_fetch_failure(FetchErrorKind.INVALID)
        text = m.render_prometheus()
        assert "# TYPE gold_monitor_fetches_total counter" in text
        assert 'gold_monitor_fetch_failures_total{kind="invalid"} 1' in text
        assert 'gold_monitor_fetch_failures_total{kind="transient"} 0' in text
        assert text.endswith("\n")

    def test_gauges_rendered(self) -> None:
        text = MetricsCollector().render_prometheus(_snapshot())
        assert 'gold_monitor_severity{severity="WARNING"} 1' in text
        assert 'gold_monitor_severity{severity="NOMINAL"} 0' in text
        assert "gold_monitor_last_value 150" in text
        assert "gold_monitor_history_size 1" in text

    def test_no_value_gauges_when_empty(self) -> None:
        text = MetricsCollector().render_prometheus(_snapshot(value=None, severity=Severity.UNKNOWN))
        assert "gold_monitor_last_value" not in text
        assert 'gold_monitor_severity{severity="UNKNOWN"} 1' in text
