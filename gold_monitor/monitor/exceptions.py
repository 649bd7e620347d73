"""Alerting exceptions."""

from __future__ import annotations


class DispatchError(Exception):
    """An alert sink was unreachable or rejected the message."""
