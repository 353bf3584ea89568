"""Cool-down gate that keeps the same alert title from repeating within a window."""

import structlog

from pulsealert.services.scheduling import Clock, SystemClock

logger = structlog.get_logger(__name__)

DEFAULT_SUPPRESSION_SECONDS = 30.0


class SuppressionGate:
    """
    Tracks when each alert title last fired.

    Titles are independent: firing "High Heart Rate" never consumes the
    cool-down of "Irregular Heartbeat", even for the same sample.
    """

    def __init__(self, clock: Clock | None = None, window_seconds: float = DEFAULT_SUPPRESSION_SECONDS) -> None:
        if window_seconds < 0:
            raise ValueError("window_seconds cannot be negative")
        self._clock = clock or SystemClock()
        self.window_seconds = window_seconds
        self._last_fired: dict[str, float] = {}
        self.logger = logger.bind(component="suppression_gate")

    def should_suppress(self, title: str, now: float | None = None) -> bool:
        now = self._clock.monotonic() if now is None else now
        last = self._last_fired.get(title)
        return last is not None and now - last < self.window_seconds

    def record_fired(self, title: str, now: float | None = None) -> None:
        now = self._clock.monotonic() if now is None else now
        self._prune(now)
        self._last_fired[title] = now

    def try_fire(self, title: str, now: float | None = None) -> bool:
        """Check and record in one step. Returns False when suppressed."""
        now = self._clock.monotonic() if now is None else now
        if self.should_suppress(title, now):
            self.logger.info("alert_suppressed", title=title, window_seconds=self.window_seconds)
            return False
        self.record_fired(title, now)
        return True

    def last_fired(self, title: str) -> float | None:
        return self._last_fired.get(title)

    def reset(self) -> None:
        self._last_fired.clear()

    def _prune(self, now: float) -> None:
        expired = [t for t, last in self._last_fired.items() if now - last >= self.window_seconds]
        for title in expired:
            del self._last_fired[title]
