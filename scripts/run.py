#!/usr/bin/env python3
"""Run the gold monitor from a source checkout.

Usage::

    python scripts/run.py --config config/settings.yaml --log-level DEBUG
"""

from __future__ import annotations

from gold_monitor.app import main

if __name__ == "__main__":
    main()
