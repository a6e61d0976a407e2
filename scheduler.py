"""Polling loop: sample, evaluate, report, on a fixed interval"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from engine import Decision, Indeterminate, Opportunity, TradeParameters, evaluate
from sampler import Sampler
from venues.base import PriceResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickReport:
    """Everything one tick produced, handed to each reporting sink"""
    tick: int
    started_at: datetime
    duration: float  # seconds
    results: tuple[PriceResult, ...]
    decision: Decision

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "started_at": self.started_at.isoformat(),
            "duration_ms": round(self.duration * 1000, 1),
            "results": [r.to_dict() for r in self.results],
            "decision": self.decision.to_dict(),
        }


def plan_next_tick(started: float, finished: float, interval: float) -> tuple[float, int]:
    """
    Next tick start on the grid started + k * interval, and how many grid
    points the finished tick ran past (those ticks are skipped).
    """
    elapsed = max(0.0, finished - started)
    missed = max(0, math.ceil(elapsed / interval) - 1)
    return started + (missed + 1) * interval, missed


class PollingLoop:
    """
    Drives the sampler forever: Idle -> Sampling -> Evaluating -> Reporting -> Idle.

    A tick never overlaps the previous one. Ticks whose start falls inside a
    slow tick are skipped and counted in missed_ticks.
    """

    def __init__(
        self,
        sampler: Sampler,
        params: TradeParameters,
        poll_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.sampler = sampler
        self.params = params
        self.poll_interval = poll_interval
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._current: Optional[asyncio.Task] = None
        self._on_tick_callbacks: list[Callable[[TickReport], None]] = []

        self.ticks = 0
        self.missed_ticks = 0
        self.opportunities = 0
        self.indeterminate = 0
        self.errors = 0
        self.last_report: Optional[TickReport] = None

    def on_tick(self, callback: Callable[[TickReport], None]):
        """Register a reporting sink"""
        self._on_tick_callbacks.append(callback)

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    async def run_once(self) -> TickReport:
        """One full tick"""
        self.ticks += 1
        started_at = datetime.now()
        t0 = self._clock()

        results = await self.sampler.sample()
        decision = evaluate(results, self.sampler.pair, self.params)

        report = TickReport(
            tick=self.ticks,
            started_at=started_at,
            duration=self._clock() - t0,
            results=tuple(results),
            decision=decision,
        )
        if isinstance(decision, Opportunity):
            self.opportunities += 1
        elif isinstance(decision, Indeterminate):
            self.indeterminate += 1
        self.last_report = report

        for callback in self._on_tick_callbacks:
            try:
                callback(report)
            except Exception as e:
                logger.error(f"Tick callback error: {e}", exc_info=True)
        return report

    async def run(self, max_ticks: Optional[int] = None):
        """Run until stop() is called, or for max_ticks ticks"""
        logger.info(
            f"Polling {len(self.sampler.sources)} venues for {self.sampler.pair} "
            f"every {self.poll_interval:g}s"
        )
        completed = 0
        while self.running:
            started = self._clock()
            self._current = asyncio.create_task(self.run_once())
            try:
                await self._current
            except asyncio.CancelledError:
                if self.running:
                    raise
                logger.warning("In-flight tick abandoned on shutdown")
                break
            except Exception as e:
                self.errors += 1
                logger.error(f"Tick failed: {e}", exc_info=True)
            finally:
                self._current = None

            completed += 1
            if max_ticks is not None and completed >= max_ticks:
                break

            next_start, missed = plan_next_tick(started, self._clock(), self.poll_interval)
            if missed:
                self.missed_ticks += missed
                logger.warning(
                    f"Tick {self.ticks} overran the {self.poll_interval:g}s interval, "
                    f"skipped {missed} tick(s)"
                )

            delay = max(0.0, next_start - self._clock())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Polling stopped after {self.ticks} ticks ({self.missed_ticks} missed)")

    def stop(self):
        """Prevent new ticks from starting"""
        self._stop_event.set()

    async def shutdown(self, grace: float):
        """Stop, then give an in-flight tick up to grace seconds before cancelling it"""
        self.stop()
        task = self._current
        if task is None or task.done():
            return
        _, pending = await asyncio.wait({task}, timeout=grace)
        if pending:
            logger.warning(f"Cancelling tick {self.ticks} after {grace:g}s grace period")
            task.cancel()

    def get_state(self) -> dict:
        """Counters and the latest tick, for the dashboard"""
        return {
            "running": self.running,
            "ticks": self.ticks,
            "missed_ticks": self.missed_ticks,
            "opportunities": self.opportunities,
            "indeterminate": self.indeterminate,
            "errors": self.errors,
            "last_tick": self.last_report.to_dict() if self.last_report else None,
        }
