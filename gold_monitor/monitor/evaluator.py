"""Pure threshold evaluation — history in, AlertState out.

Nothing here reads clocks or shared state: the same history, thresholds and
staleness inputs always produce the same AlertState.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from gold_monitor.core.config import ThresholdConfig
from gold_monitor.core.types import (
    AlertState,
    Observation,
    Severity,
    ThresholdDirection,
    Transition,
)


def classify(value: Decimal, thresholds: ThresholdConfig) -> Severity:
    """Map a value onto its severity band.

    Bands are closed at the boundary nearer to CRITICAL, so a value equal to
    a boundary belongs to the more severe band.
    """
    if thresholds.direction == ThresholdDirection.RISING:
        if value >= thresholds.critical:
            return Severity.CRITICAL
        if value >= thresholds.warning:
            return Severity.WARNING
        return Severity.NOMINAL

    if value <= thresholds.critical:
        return Severity.CRITICAL
    if value <= thresholds.warning:
        return Severity.WARNING
    return Severity.NOMINAL


def evaluate(
    history: Sequence[Observation],
    thresholds: ThresholdConfig,
    *,
    missed_cycles: int = 0,
    stale_after: int = 1,
    stale_since: float | None = None,
) -> AlertState:
    """Derive the AlertState from time-ordered *history* (most recent last).

    Args:
        history: Stored observations, oldest first.
        thresholds: Severity band boundaries.
        missed_cycles: Consecutive poll cycles without a successful fetch.
        stale_after: Missed cycles after which the data counts as stale.
        stale_since: When the current stale streak started.

    Returns:
        UNKNOWN when there is no history or the data is stale, otherwise the
        band of the latest value with ``since`` set to the start of the
        trailing run of observations in that band.
    """
    if not history:
        return AlertState(severity=Severity.UNKNOWN, since=stale_since or 0.0)

    latest = history[-1]

    if missed_cycles >= stale_after:
        return AlertState(
            severity=Severity.UNKNOWN,
            since=stale_since if stale_since is not None else latest.timestamp,
            last_value=latest.value,
        )

    severity = classify(latest.value, thresholds)
    since = latest.timestamp
    for obs in reversed(history[:-1]):
        if classify(obs.value, thresholds) != severity:
            break
        since = obs.timestamp

    return AlertState(severity=severity, since=since, last_value=latest.value)


def detect_transition(
    previous: AlertState | None,
    current: AlertState,
    observation: Observation | None = None,
) -> Transition | None:
    """Return a Transition when the severity changed, else None.

    *previous* is None before the first evaluation; that evaluation sets the
    baseline and is not a transition.
    """
    if previous is None or previous.severity == current.severity:
        return None
    if observation is None or current.severity == Severity.UNKNOWN:
        timestamp = current.since
    else:
        timestamp = observation.timestamp
    return Transition(
        previous=previous.severity,
        current=current.severity,
        observation=observation,
        timestamp=timestamp,
    )
