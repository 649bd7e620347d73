"""Pure functions that turn transitions into AlertMessage objects."""

from __future__ import annotations

import datetime
from decimal import Decimal

from gold_monitor.core.types import Severity, Transition
from gold_monitor.monitor.types import AlertMessage

_DIRECTION_WORD: dict[Severity, str] = {
    Severity.NOMINAL: "recovered to",
    Severity.WARNING: "entered",
    Severity.CRITICAL: "entered",
    Severity.UNKNOWN: "lost data, now",
}


def format_grouped(value: Decimal | None, separator: str = ".") -> str:
    """Group thousands the way rupiah amounts are written (``1.234.000``).

    Fractions keep a comma as decimal mark when *separator* is ``"."``.
    """
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    whole, _, frac = f"{abs(value):f}".partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    text = separator.join(groups)
    if frac.strip("0"):
        decimal_mark = "," if separator == "." else "."
        text = f"{text}{decimal_mark}{frac.rstrip('0')}"
    return f"{sign}{text}"


def _iso(ts: float) -> str:
    return datetime.datetime.fromtimestamp(ts, datetime.UTC).isoformat()


def format_transition(transition: Transition) -> AlertMessage:
    """Build the alert for a severity transition."""
    obs = transition.observation
    fields: dict[str, str] = {
        "from": transition.previous.value,
        "to": transition.current.value,
        "at": _iso(transition.timestamp),
    }
    if obs is not None:
        fields["value"] = format_grouped(obs.value)
        fields["observed_at"] = _iso(obs.timestamp)
        if obs.source:
            fields["source"] = obs.source

    verb = _DIRECTION_WORD[transition.current]
    body = f"Gold rate {verb} {transition.current.value}"
    if obs is not None and transition.current != Severity.UNKNOWN:
        body = f"{body} at {format_grouped(obs.value)}"

    return AlertMessage(
        severity=transition.current,
        title=f"{transition.previous.value} -> {transition.current.value}",
        body=body,
        fields=fields,
        source_event_type="SEVERITY_TRANSITION",
        timestamp=transition.timestamp,
        raw=transition.model_dump(mode="json"),
    )
