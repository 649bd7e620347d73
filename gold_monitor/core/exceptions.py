"""Process-level exceptions."""

from __future__ import annotations


class GoldMonitorError(Exception):
    """Base exception for gold-monitor errors."""


class ConfigError(GoldMonitorError):
    """Configuration could not be loaded or failed validation (fatal at startup)."""
