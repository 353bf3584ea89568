"""
Burst collapsing for blood-pressure alert evaluation.

Each stream (a device, or the manual-entry source) keeps at most one pending
reading. Every new reading replaces it and restarts the quiet-period timer;
when the timer elapses the last reading is evaluated once. Only the alert
decision is debounced. Readings are persisted before they get here.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from pulsealert.domain.models import BloodPressureReading
from pulsealert.services.scheduling import AsyncioScheduler, Scheduler, TimerHandle

logger = structlog.get_logger(__name__)

Evaluator = Callable[[BloodPressureReading], Awaitable[None] | None]

DEFAULT_DEBOUNCE_SECONDS = 1.2


class StreamState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass
class _PendingStream:
    reading: BloodPressureReading
    timer: TimerHandle


class AlertDebouncer:
    """Per-stream most-recent-wins debouncer."""

    def __init__(
        self,
        evaluate: Evaluator,
        scheduler: Scheduler | None = None,
        delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        if delay_seconds <= 0:
            raise ValueError("delay_seconds must be positive")
        self._evaluate = evaluate
        self._scheduler = scheduler or AsyncioScheduler()
        self.delay_seconds = delay_seconds
        self._pending: dict[str, _PendingStream] = {}
        self._inflight: set[asyncio.Future[None]] = set()
        self._disposed = False
        self.logger = logger.bind(component="alert_debouncer")

    @property
    def disposed(self) -> bool:
        return self._disposed

    @staticmethod
    def stream_for(reading: BloodPressureReading) -> str:
        return reading.device_id or reading.source

    def on_reading(self, reading: BloodPressureReading, stream: str | None = None) -> None:
        if self._disposed:
            self.logger.debug("reading_ignored_after_dispose", reading_id=reading.id)
            return

        key = stream or self.stream_for(reading)
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.timer.cancel()
            self.logger.debug("pending_reading_replaced", stream=key, discarded=previous.reading.id)

        timer = self._scheduler.call_later(self.delay_seconds, lambda: self._fire(key))
        self._pending[key] = _PendingStream(reading=reading, timer=timer)

    def state(self, stream: str) -> StreamState:
        return StreamState.PENDING if stream in self._pending else StreamState.IDLE

    def pending_reading(self, stream: str) -> BloodPressureReading | None:
        entry = self._pending.get(stream)
        return entry.reading if entry else None

    def cancel(self, stream: str) -> bool:
        """Drop a stream's pending reading without evaluating it."""
        entry = self._pending.pop(stream, None)
        if entry is None:
            return False
        entry.timer.cancel()
        self.logger.info("pending_evaluation_cancelled", stream=stream)
        return True

    def dispose(self) -> None:
        """Cancel every timer and in-flight evaluation. Further readings are ignored."""
        self._disposed = True
        for entry in self._pending.values():
            entry.timer.cancel()
        self._pending.clear()
        for task in self._inflight:
            task.cancel()
        self.logger.info("debouncer_disposed", cancelled_evaluations=len(self._inflight))

    async def wait_idle(self) -> None:
        """Wait for evaluations that have already been dispatched."""
        while self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def _fire(self, stream: str) -> None:
        entry = self._pending.pop(stream, None)
        if entry is None or self._disposed:
            return

        self.logger.debug("evaluation_dispatched", stream=stream, reading_id=entry.reading.id)
        try:
            outcome = self._evaluate(entry.reading)
        except Exception as e:
            self.logger.exception("evaluation_failed", error=str(e), stream=stream)
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._inflight.add(task)
            task.add_done_callback(self._evaluation_done)

    def _evaluation_done(self, task: "asyncio.Future[None]") -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("evaluation_failed", error=str(error), exc_info=error)
