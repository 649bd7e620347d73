"""Poller — drives fetch → evaluate → commit cycles on a fixed interval.

One cycle walks the phases::

    IDLE → FETCHING → EVALUATING → IDLE                    (success)
    IDLE → FETCHING → RETRYING → FETCHING → ...            (transient failure)
         ... → EVALUATING (missed cycle) → IDLE             (attempts exhausted)
    IDLE → FETCHING → EVALUATING (missed cycle) → IDLE     (invalid payload)

The store is only written by the single ``commit`` at the end of a cycle, so
cancelling a cycle mid-fetch or mid-backoff leaves it untouched.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from gold_monitor.core.config import MonitorConfig
from gold_monitor.core.types import (
    CycleOutcome,
    CycleResult,
    Observation,
    PollerPhase,
    Transition,
)
from gold_monitor.feeds.base import BaseFetcher
from gold_monitor.feeds.exceptions import (
    FetchError,
    FetchErrorKind,
    InvalidFetchError,
    TransientFetchError,
)
from gold_monitor.monitor.dispatcher import AlertDispatcher
from gold_monitor.monitor.evaluator import detect_transition, evaluate
from gold_monitor.monitor.metrics import MetricsCollector
from gold_monitor.monitor.store import StateStore, StoreSnapshot

logger = structlog.stdlib.get_logger()

TransitionCallback = Callable[[Transition], Awaitable[None] | None]
CommitCallback = Callable[[StoreSnapshot], Awaitable[None] | None]
SleepFn = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_secs: float, cap_secs: float) -> float:
    """Delay before retry number *attempt* (1-based): ``min(base * 2**(attempt-1), cap)``."""
    return min(base_secs * (2 ** (attempt - 1)), cap_secs)


class Poller:
    """Runs poll cycles in a background task, one at a time.

    Usage::

        poller = Poller(fetcher, store, settings.monitor, dispatcher, metrics)
        poller.on_commit(broadcaster.publish)
        await poller.start()
        ...
        await poller.stop(grace_secs=5.0)
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        store: StateStore,
        config: MonitorConfig,
        dispatcher: AlertDispatcher | None = None,
        metrics: MetricsCollector | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._config = config
        self._dispatcher = dispatcher
        self._metrics = metrics or MetricsCollector()
        self._sleep = sleep
        self._clock = clock

        self._phase = PollerPhase.IDLE
        self._missed_cycles = 0
        self._stale_since: float | None = None
        self._last_result: CycleResult | None = None
        self._transition_callbacks: list[TransitionCallback] = []
        self._commit_callbacks: list[CommitCallback] = []

        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._wake = asyncio.Event()

    # ── Properties ──────────────────────────────────────────────

    @property
    def phase(self) -> PollerPhase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._running

    @property
    def missed_cycles(self) -> int:
        """Consecutive cycles without a successful fetch."""
        return self._missed_cycles

    @property
    def stale(self) -> bool:
        return self._missed_cycles >= self._config.stale_after_missed_cycles

    @property
    def last_result(self) -> CycleResult | None:
        return self._last_result

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def on_transition(self, callback: TransitionCallback) -> None:
        """Register a callback for severity transitions."""
        self._transition_callbacks.append(callback)

    def on_commit(self, callback: CommitCallback) -> None:
        """Register a callback receiving the store snapshot after every cycle."""
        self._commit_callbacks.append(callback)

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Start the background poll loop."""
        if self._running:
            return
        self._running = True
        self._wake.clear()
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "poller_started",
            poll_interval_secs=self._config.poll_interval_secs,
            max_attempts=self._config.retry.max_attempts,
        )

    async def stop(self, grace_secs: float = 5.0) -> None:
        """Stop the loop, giving an in-flight cycle *grace_secs* to finish."""
        self._running = False
        self._wake.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=grace_secs)
            except TimeoutError:
                logger.warning("poller_cycle_abandoned", phase=self._phase.value)
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        self._phase = PollerPhase.IDLE
        logger.info("poller_stopped")

    async def _poll_loop(self) -> None:
        interval = self._config.poll_interval_secs
        while self._running:
            await self.run_cycle()
            if not self._running:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=interval)
            except TimeoutError:
                pass

    # ── Cycle ───────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """Run one fetch → evaluate → commit cycle. Never raises (except on cancel)."""
        try:
            result = await self._cycle()
        except asyncio.CancelledError:
            self._phase = PollerPhase.IDLE
            raise
        except Exception:
            logger.exception("poll_cycle_error", phase=self._phase.value)
            self._metrics.record_cycle_error()
            result = await self._miss(CycleOutcome.ERROR, attempts=0)
        self._phase = PollerPhase.IDLE
        self._last_result = result
        return result

    async def _cycle(self) -> CycleResult:
        retry = self._config.retry
        attempt = 0
        while True:
            attempt += 1
            self._phase = PollerPhase.FETCHING
            self._metrics.record_fetch_attempt()
            try:
                obs = await asyncio.wait_for(
                    self._fetcher.fetch(),
                    timeout=self._config.fetch_timeout_secs,
                )
            except TimeoutError:
                error: FetchError = TransientFetchError(
                    f"fetch timed out after {self._config.fetch_timeout_secs}s"
                )
            except InvalidFetchError as exc:
                self._metrics.record_fetch_failure(FetchErrorKind.INVALID)
                logger.warning("data_quality_failure", error=str(exc), attempt=attempt)
                return await self._miss(CycleOutcome.INVALID, attempts=attempt)
            except FetchError as exc:
                error = exc
            else:
                return await self._evaluate(obs, attempts=attempt)

            self._metrics.record_fetch_failure(FetchErrorKind.TRANSIENT)
            if attempt >= retry.max_attempts:
                logger.warning(
                    "poll_cycle_missed",
                    attempts=attempt,
                    error=str(error),
                    missed_cycles=self._missed_cycles + 1,
                )
                return await self._miss(CycleOutcome.EXHAUSTED, attempts=attempt)

            delay = backoff_delay(attempt, retry.backoff_base_secs, retry.backoff_cap_secs)
            logger.info("fetch_retrying", attempt=attempt, delay=delay, error=str(error))
            self._phase = PollerPhase.RETRYING
            await self._sleep(delay)

    async def _evaluate(self, obs: Observation, attempts: int) -> CycleResult:
        self._phase = PollerPhase.EVALUATING
        self._missed_cycles = 0
        self._stale_since = None

        snap = self._store.snapshot()
        latest = snap.latest
        duplicate = latest is not None and obs.timestamp <= latest.timestamp
        if duplicate:
            history = snap.history
        else:
            history = (snap.history + (obs,))[-self._store.retention_size:]

        state = evaluate(
            history,
            self._config.thresholds,
            stale_after=self._config.stale_after_missed_cycles,
        )
        recorded = self._store.commit(state, None if duplicate else obs)
        self._metrics.record_fetch_success(recorded=recorded)

        previous = snap.state if snap.commits else None
        transition = detect_transition(previous, state, history[-1])
        await self._after_commit(transition)

        return CycleResult(
            outcome=CycleOutcome.RECORDED if recorded else CycleOutcome.DUPLICATE,
            attempts=attempts,
            observation=obs,
            state=state,
            transition=transition,
        )

    async def _miss(self, outcome: CycleOutcome, attempts: int) -> CycleResult:
        """Record a cycle without a successful fetch and re-evaluate staleness."""
        self._phase = PollerPhase.EVALUATING
        self._missed_cycles += 1
        if self._stale_since is None:
            self._stale_since = self._clock()
        self._metrics.record_missed_cycle()

        snap = self._store.snapshot()
        state = evaluate(
            snap.history,
            self._config.thresholds,
            missed_cycles=self._missed_cycles,
            stale_after=self._config.stale_after_missed_cycles,
            stale_since=self._stale_since,
        )
        self._store.commit(state)

        previous = snap.state if snap.commits else None
        transition = detect_transition(previous, state, snap.latest)
        await self._after_commit(transition)

        return CycleResult(
            outcome=outcome,
            attempts=attempts,
            state=state,
            transition=transition,
        )

    async def _after_commit(self, transition: Transition | None) -> None:
        if transition is not None:
            self._metrics.record_transition(transition.current)
            logger.info(
                "severity_transition",
                previous=transition.previous.value,
                current=transition.current.value,
                value=str(transition.observation.value) if transition.observation else None,
            )
            if self._dispatcher is not None:
                try:
                    await self._dispatcher.notify(transition)
                except Exception:
                    logger.exception("alert_dispatcher_error")
            for cb in self._transition_callbacks:
                await self._call(cb, transition)

        snapshot = self._store.snapshot()
        for commit_cb in self._commit_callbacks:
            await self._call(commit_cb, snapshot)

    @staticmethod
    async def _call(callback: Callable[[object], Awaitable[None] | None], arg: object) -> None:
        try:
            result = callback(arg)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("poller_callback_error", callback=getattr(callback, "__name__", "?"))
