"""Tests for the pure evaluator — banding, boundaries, staleness, transitions."""

from __future__ import annotations

from decimal import Decimal

import pytest

from gold_monitor.core.config import ThresholdConfig
from gold_monitor.core.types import AlertState, Observation, Severity, ThresholdDirection
from gold_monitor.monitor.evaluator import classify, detect_transition, evaluate


# ── Helpers ─────────────────────────────────────────────────────


RISING = ThresholdConfig(warning=Decimal("100"), critical=Decimal("200"))
FALLING = ThresholdConfig(
    direction=ThresholdDirection.FALLING,
    warning=Decimal("50"),
    critical=Decimal("20"),
)


def _history(*values: int, start: float = 1000.0) -> list[Observation]:
    return [
        Observation(timestamp=start + i, value=Decimal(v), source="test")
        for i, v in enumerate(values)
    ]


# ── classify ────────────────────────────────────────────────────


class TestClassify:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (50, Severity.NOMINAL),
            (99, Severity.NOMINAL),
            (100, Severity.WARNING),
            (199, Severity.WARNING),
            (200, Severity.CRITICAL),
            (10_000, Severity.CRITICAL),
        ],
    )
    def test_rising(self, value: int, expected: Severity) -> None:
        assert classify(Decimal(value), RISING) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (80, Severity.NOMINAL),
            (50, Severity.WARNING),
            (21, Severity.WARNING),
            (20, Severity.CRITICAL),
            (-5, Severity.CRITICAL),
        ],
    )
    def test_falling(self, value: int, expected: Severity) -> None:
        assert classify(Decimal(value), FALLING) == expected

    def test_decimal_precision_at_boundary(self) -> None:
        assert classify(Decimal("99.999999"), RISING) == Severity.NOMINAL
        assert classify(Decimal("100.000"), RISING) == Severity.WARNING


# ── evaluate ────────────────────────────────────────────────────


class TestEvaluate:
    def test_empty_history_unknown(self) -> None:
        state = evaluate([], RISING)
        assert state.severity == Severity.UNKNOWN
        assert state.last_value is None

    def test_latest_value_decides(self) -> None:
        state = evaluate(_history(250, 150), RISING)
        assert state.severity == Severity.WARNING
        assert state.last_value == Decimal("150")

    def test_since_is_start_of_run(self) -> None:
        state = evaluate(_history(50, 150, 160, 170), RISING)
        assert state.severity == Severity.WARNING
        assert state.since == 1001.0

    def test_since_single_band(self) -> None:
        state = evaluate(_history(10, 20, 30), RISING)
        assert state.severity == Severity.NOMINAL
        assert state.since == 1000.0

    def test_idempotent(self) -> None:
        history = _history(50, 150, 250)
        assert evaluate(history, RISING) == evaluate(history, RISING)

    def test_stale_is_unknown_with_last_value(self) -> None:
        state = evaluate(_history(50), RISING, missed_cycles=1, stale_after=1, stale_since=2000.0)
        assert state.severity == Severity.UNKNOWN
        assert state.last_value == Decimal("50")
        assert state.since == 2000.0

    def test_not_yet_stale(self) -> None:
        state = evaluate(_history(50), RISING, missed_cycles=1, stale_after=3)
        assert state.severity == Severity.NOMINAL

    def test_stale_without_since_uses_latest(self) -> None:
        state = evaluate(_history(50, 60), RISING, missed_cycles=2, stale_after=1)
        assert state.since == 1001.0


# ── detect_transition ───────────────────────────────────────────


class TestDetectTransition:
    def test_baseline_is_not_transition(self) -> None:
        assert detect_transition(None, AlertState(severity=Severity.WARNING)) is None

    def test_same_severity(self) -> None:
        prev = AlertState(severity=Severity.NOMINAL, since=1.0)
        cur = AlertState(severity=Severity.NOMINAL, since=1.0, last_value=Decimal("5"))
        assert detect_transition(prev, cur) is None

    def test_change_carries_observation(self) -> None:
        obs = _history(150)[0]
        prev = AlertState(severity=Severity.NOMINAL, since=1.0)
        cur = AlertState(severity=Severity.WARNING, since=obs.timestamp, last_value=obs.value)
        t = detect_transition(prev, cur, obs)
        assert t is not None
        assert t.previous == Severity.NOMINAL
        assert t.current == Severity.WARNING
        assert t.observation == obs
        assert t.timestamp == obs.timestamp

    def test_unknown_uses_state_since(self) -> None:
        obs = _history(50)[0]
        prev = AlertState(severity=Severity.NOMINAL, since=1.0)
        cur = AlertState(severity=Severity.UNKNOWN, since=5000.0, last_value=obs.value)
        t = detect_transition(prev, cur, obs)
        assert t is not None
        assert t.timestamp == 5000.0
