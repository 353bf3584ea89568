"""
Tests for the per-stream debouncer and the virtual clock that drives it.

Time is simulated: nothing here sleeps.
"""

from datetime import UTC, datetime

import pytest

from pulsealert.domain.models import BloodPressureReading
from pulsealert.services.debouncer import AlertDebouncer, StreamState
from pulsealert.services.scheduling import VirtualClock


def make_reading(
    reading_id: str,
    systolic: int = 135,
    diastolic: int = 85,
    device_id: str | None = "watch-1",
) -> BloodPressureReading:
    return BloodPressureReading(
        id=reading_id,
        user_id="u1",
        systolic=systolic,
        diastolic=diastolic,
        timestamp=datetime.now(UTC),
        date="2024-05-01",
        time="08:30:00",
        source="device" if device_id else "manual",
        device_id=device_id,
    )


class Recorder:
    """Synchronous evaluator that remembers what it saw and when."""

    def __init__(self, clock: VirtualClock) -> None:
        self.clock = clock
        self.calls: list[tuple[str, float]] = []

    def __call__(self, reading: BloodPressureReading) -> None:
        self.calls.append((reading.id, self.clock.monotonic()))


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def recorder(clock: VirtualClock) -> Recorder:
    return Recorder(clock)


@pytest.fixture
def debouncer(clock: VirtualClock, recorder: Recorder) -> AlertDebouncer:
    return AlertDebouncer(recorder, scheduler=clock, delay_seconds=1.2)


class TestVirtualClock:
    def test_timers_fire_in_due_order(self, clock: VirtualClock) -> None:
        fired: list[str] = []
        clock.call_later(2.0, lambda: fired.append("late"))
        clock.call_later(1.0, lambda: fired.append("early"))

        clock.advance(5.0)

        assert fired == ["early", "late"]
        assert clock.monotonic() == pytest.approx(5.0)

    def test_cancelled_timer_does_not_fire(self, clock: VirtualClock) -> None:
        fired: list[str] = []
        handle = clock.call_later(1.0, lambda: fired.append("x"))
        handle.cancel()

        clock.advance(2.0)

        assert fired == []
        assert clock.pending_timers == 0

    def test_callback_sees_its_due_time(self, clock: VirtualClock) -> None:
        seen: list[float] = []
        clock.call_later(0.5, lambda: seen.append(clock.monotonic()))

        clock.advance(3.0)

        assert seen == [pytest.approx(0.5)]


class TestAlertDebouncer:
    def test_burst_collapses_to_last_reading(
        self, debouncer: AlertDebouncer, clock: VirtualClock, recorder: Recorder
    ) -> None:
        debouncer.on_reading(make_reading("r1"))
        clock.advance(0.2)
        debouncer.on_reading(make_reading("r2"))
        clock.advance(0.2)
        debouncer.on_reading(make_reading("r3"))

        clock.advance(1.0)
        assert recorder.calls == []

        clock.advance(0.5)
        assert len(recorder.calls) == 1
        reading_id, fired_at = recorder.calls[0]
        assert reading_id == "r3"
        assert fired_at == pytest.approx(1.6)

    def test_single_reading_evaluated_after_delay(
        self, debouncer: AlertDebouncer, clock: VirtualClock, recorder: Recorder
    ) -> None:
        debouncer.on_reading(make_reading("r1"))

        clock.advance(1.1)
        assert recorder.calls == []
        clock.advance(0.2)
        assert [call[0] for call in recorder.calls] == ["r1"]

    def test_streams_are_independent(
        self, debouncer: AlertDebouncer, clock: VirtualClock, recorder: Recorder
    ) -> None:
        debouncer.on_reading(make_reading("watch", device_id="watch-1"))
        clock.advance(0.6)
        debouncer.on_reading(make_reading("manual", device_id=None))

        clock.advance(0.7)
        assert [call[0] for call in recorder.calls] == ["watch"]

        clock.advance(0.7)
        assert [call[0] for call in recorder.calls] == ["watch", "manual"]

    def test_state_transitions(self, debouncer: AlertDebouncer, clock: VirtualClock) -> None:
        assert debouncer.state("watch-1") is StreamState.IDLE

        debouncer.on_reading(make_reading("r1"))
        assert debouncer.state("watch-1") is StreamState.PENDING
        assert debouncer.pending_reading("watch-1").id == "r1"  # type: ignore[union-attr]

        clock.advance(2.0)
        assert debouncer.state("watch-1") is StreamState.IDLE
        assert debouncer.pending_reading("watch-1") is None

    def test_stream_key_defaults_to_device_then_source(self) -> None:
        assert AlertDebouncer.stream_for(make_reading("a", device_id="band-7")) == "band-7"
        assert AlertDebouncer.stream_for(make_reading("b", device_id=None)) == "manual"

    def test_cancel_drops_pending_reading(
        self, debouncer: AlertDebouncer, clock: VirtualClock, recorder: Recorder
    ) -> None:
        debouncer.on_reading(make_reading("r1"))

        assert debouncer.cancel("watch-1") is True
        assert debouncer.cancel("watch-1") is False

        clock.advance(5.0)
        assert recorder.calls == []

    def test_dispose_cancels_everything_and_ignores_new_readings(
        self, debouncer: AlertDebouncer, clock: VirtualClock, recorder: Recorder
    ) -> None:
        debouncer.on_reading(make_reading("r1", device_id="a"))
        debouncer.on_reading(make_reading("r2", device_id="b"))

        debouncer.dispose()
        debouncer.on_reading(make_reading("r3", device_id="c"))
        clock.advance(5.0)

        assert debouncer.disposed
        assert recorder.calls == []
        assert clock.pending_timers == 0

    def test_evaluator_error_does_not_break_later_bursts(self, clock: VirtualClock) -> None:
        seen: list[str] = []

        def evaluate(reading: BloodPressureReading) -> None:
            seen.append(reading.id)
            if reading.id == "bad":
                raise RuntimeError("boom")

        debouncer = AlertDebouncer(evaluate, scheduler=clock, delay_seconds=1.2)
        debouncer.on_reading(make_reading("bad"))
        clock.advance(2.0)
        debouncer.on_reading(make_reading("good"))
        clock.advance(2.0)

        assert seen == ["bad", "good"]

    def test_delay_must_be_positive(self, recorder: Recorder) -> None:
        with pytest.raises(ValueError):
            AlertDebouncer(recorder, delay_seconds=0)

    @pytest.mark.asyncio
    async def test_async_evaluator_is_awaited(self, clock: VirtualClock) -> None:
        seen: list[str] = []

        async def evaluate(reading: BloodPressureReading) -> None:
            seen.append(reading.id)

        debouncer = AlertDebouncer(evaluate, scheduler=clock, delay_seconds=1.2)
        debouncer.on_reading(make_reading("r1"))
        debouncer.on_reading(make_reading("r2"))
        clock.advance(1.2)
        await debouncer.wait_idle()

        assert seen == ["r2"]
