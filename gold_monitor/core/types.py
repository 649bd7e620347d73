"""Domain types for the monitor — all monitored values use Decimal."""

from __future__ import annotations

import time
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Severity(StrEnum):
    """Alert level of the monitored quantity."""

    NOMINAL = "NOMINAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"

    @property
    def rank(self) -> int:
        """Ordering key: NOMINAL < WARNING < CRITICAL; UNKNOWN sorts first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.UNKNOWN: -1,
    Severity.NOMINAL: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
}


class ThresholdDirection(StrEnum):
    """Which way the value has to move to become more severe."""

    RISING = "rising"
    FALLING = "falling"


class Observation(BaseModel):
    """A single timestamped sample of the monitored quantity."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    value: Decimal
    source: str = ""
    # Companion quantity quoted with the value (the selling rate next to a buying rate).
    secondary_value: Decimal | None = None


class AlertState(BaseModel):
    """Current severity of the monitored quantity and since when it holds."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Severity.UNKNOWN
    since: float = 0.0
    last_value: Decimal | None = None


class Transition(BaseModel):
    """A severity change between two consecutive evaluations."""

    model_config = ConfigDict(frozen=True)

    previous: Severity
    current: Severity
    observation: Observation | None = None
    timestamp: float = Field(default_factory=time.time)


# ── Poller Types ────────────────────────────────────────────────


class PollerPhase(StrEnum):
    """Phases of a single poll cycle."""

    IDLE = "IDLE"
    FETCHING = "FETCHING"
    RETRYING = "RETRYING"
    EVALUATING = "EVALUATING"


class CycleOutcome(StrEnum):
    """How a poll cycle ended."""

    RECORDED = "RECORDED"  # new observation stored
    DUPLICATE = "DUPLICATE"  # fetch succeeded, observation already seen
    EXHAUSTED = "EXHAUSTED"  # transient failures used up every attempt
    INVALID = "INVALID"  # malformed payload, abandoned without retry
    ERROR = "ERROR"  # unexpected exception inside the cycle


class CycleResult(BaseModel):
    """Summary of one poll cycle, returned by ``Poller.run_cycle()``."""

    outcome: CycleOutcome
    attempts: int = 0
    observation: Observation | None = None
    state: AlertState | None = None
    transition: Transition | None = None
