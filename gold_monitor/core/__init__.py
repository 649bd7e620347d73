"""Core module — config, types, logging."""

from gold_monitor.core.config import Settings, get_settings, load_settings, reset_settings
from gold_monitor.core.exceptions import ConfigError, GoldMonitorError
from gold_monitor.core.logging import setup_logging
from gold_monitor.core.types import (
    AlertState,
    CycleOutcome,
    CycleResult,
    Observation,
    PollerPhase,
    Severity,
    ThresholdDirection,
    Transition,
)

__all__ = [
    "AlertState",
    "ConfigError",
    "CycleOutcome",
    "CycleResult",
    "GoldMonitorError",
    "Observation",
    "PollerPhase",
    "Settings",
    "Severity",
    "ThresholdDirection",
    "Transition",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
