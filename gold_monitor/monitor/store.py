"""StateStore — bounded observation history plus the current AlertState.

Every write builds a new immutable ``StoreSnapshot`` and swaps the reference
under a lock. Readers only dereference the current snapshot, so a reader —
on the event loop or on another thread — sees either the state before a
write or the state after it, never a mix of the two.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass

from gold_monitor.core.types import AlertState, Observation


@dataclass(frozen=True)
class StoreSnapshot:
    """Consistent view of the store at one instant."""

    history: tuple[Observation, ...]
    state: AlertState
    commits: int = 0

    @property
    def latest(self) -> Observation | None:
        return self.history[-1] if self.history else None


class StateStore:
    """In-memory ring of recent observations plus the current alert state.

    Usage::

        store = StateStore(retention_size=1441)
        if store.record(obs):
            ...
        store.commit(new_state)
        snap = store.snapshot()
    """

    def __init__(self, retention_size: int, created_at: float | None = None) -> None:
        if retention_size < 1:
            raise ValueError("retention_size must be >= 1")
        self._retention_size = retention_size
        self._ring: deque[Observation] = deque(maxlen=retention_size)
        self._lock = threading.Lock()
        self._snapshot = StoreSnapshot(
            history=(),
            state=AlertState(since=created_at if created_at is not None else time.time()),
        )

    @property
    def retention_size(self) -> int:
        return self._retention_size

    # ── Reads ───────────────────────────────────────────────────

    def snapshot(self) -> StoreSnapshot:
        """Return the current snapshot (never torn)."""
        return self._snapshot

    def current_state(self) -> AlertState:
        return self._snapshot.state

    def history(self) -> tuple[Observation, ...]:
        """Stored observations, oldest first, at most ``retention_size`` long."""
        return self._snapshot.history

    def latest(self) -> Observation | None:
        return self._snapshot.latest

    # ── Writes ──────────────────────────────────────────────────

    def record(self, obs: Observation) -> bool:
        """Append *obs* unless it is not newer than the latest stored one.

        Returns False for duplicates; the store is left untouched.
        """
        return self._write(obs, None)

    def commit(self, state: AlertState, obs: Observation | None = None) -> bool:
        """Atomically store *state* together with an optional new *obs*.

        Returns False when *obs* was a duplicate — *state* is stored anyway.
        """
        return self._write(obs, state)

    def _write(self, obs: Observation | None, state: AlertState | None) -> bool:
        with self._lock:
            current = self._snapshot
            accepted = False
            history = current.history
            if obs is not None:
                latest = current.latest
                if latest is None or obs.timestamp > latest.timestamp:
                    self._ring.append(obs)
                    history = tuple(self._ring)
                    accepted = True

            if state is None and not accepted:
                return False

            self._snapshot = StoreSnapshot(
                history=history,
                state=state if state is not None else current.state,
                commits=current.commits + (1 if state is not None else 0),
            )
            return accepted
