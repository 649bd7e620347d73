"""Tests for gold_monitor/core/types.py — severity ordering and immutability."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from gold_monitor.core.types import AlertState, Observation, Severity, Transition


class TestSeverity:
    def test_rank_order(self) -> None:
        assert Severity.NOMINAL.rank < Severity.WARNING.rank < Severity.CRITICAL.rank

    def test_unknown_ranked_apart(self) -> None:
        assert Severity.UNKNOWN.rank < Severity.NOMINAL.rank

    def test_string_value(self) -> None:
        assert Severity.CRITICAL == "CRITICAL"


class TestModels:
    def test_observation_frozen(self) -> None:
        obs = Observation(timestamp=1.0, value=Decimal("10"))
        with pytest.raises(ValidationError):
            obs.value = Decimal("11")  # type: ignore[misc]

    def test_observation_coerces_decimal(self) -> None:
        obs = Observation(timestamp=1.0, value="1234500.5")  # type: ignore[arg-type]
        assert obs.value == Decimal("1234500.5")

    def test_alert_state_defaults(self) -> None:
        state = AlertState()
        assert state.severity == Severity.UNKNOWN
        assert state.last_value is None

    def test_transition_timestamp_default(self) -> None:
        t = Transition(previous=Severity.NOMINAL, current=Severity.WARNING)
        assert t.timestamp > 0
        assert t.observation is None
