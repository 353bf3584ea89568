"""
Reading producers: manual entry, a simulated vitals feed and wearable polling.

Key patterns:
- Protocol-based sources so real device integrations can replace the simulations
- Result values for expected failures (bad input, flaky devices)
- One asyncio task per polling device, cancelled on stop
"""

import asyncio
import random
from datetime import UTC, datetime
from typing import Protocol

import structlog
from pydantic import BaseModel, Field, ValidationError, model_validator

from pulsealert.domain.events import (
    BP_ERROR,
    BP_READING,
    HR_READING,
    STREAM_CLOSED,
    BPErrorEvent,
    BPReadingEvent,
    HRReadingEvent,
    StreamClosedEvent,
)
from pulsealert.domain.models import Device
from pulsealert.services.event_bus import EventBus
from pulsealert.services.result import Result

logger = structlog.get_logger(__name__)

MOCK_DEVICES: list[Device] = [
    Device(id="00:11:22:33:44:55", name="AfyaPulse Monitor", type="bp_monitor"),
    Device(id="66:77:88:99:AA:BB", name="Sankofa Fitband", type="fitness_band"),
    Device(id="CC:DD:EE:FF:00:11", name="Zuri Health Tracker", type="smartwatch"),
]


def get_connected_devices() -> list[Device]:
    """Devices the device layer reports as connected."""
    return [device for device in MOCK_DEVICES if device.connected]


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ManualReadingRequest(BaseModel):
    """Validated manual blood-pressure entry."""

    systolic: int = Field(..., ge=50, le=250, description="Systolic pressure in mmHg")
    diastolic: int = Field(..., ge=30, le=150, description="Diastolic pressure in mmHg")
    notes: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def diastolic_not_above_systolic(self) -> "ManualReadingRequest":
        if self.diastolic > self.systolic:
            raise ValueError("Diastolic pressure cannot be higher than systolic")
        return self


class ManualHeartRateRequest(BaseModel):
    heart_rate: int = Field(..., ge=20, le=250, description="Heart rate in bpm")


class ManualEntry:
    """Producer for values the user types in."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self.logger = logger.bind(producer="manual_entry")

    async def submit_blood_pressure(
        self, systolic: int, diastolic: int, notes: str | None = None
    ) -> Result[BPReadingEvent, ValidationError]:
        try:
            request = ManualReadingRequest(systolic=systolic, diastolic=diastolic, notes=notes)
        except ValidationError as e:
            self.logger.info("manual_reading_rejected", errors=e.error_count())
            return Result.err(e)

        event = BPReadingEvent(
            systolic=request.systolic,
            diastolic=request.diastolic,
            timestamp=_utc_now_iso(),
            source="manual",
            notes=request.notes,
        )
        await self.bus.publish(BP_READING, event)
        return Result.ok(event)

    async def submit_heart_rate(self, heart_rate: int) -> Result[HRReadingEvent, ValidationError]:
        try:
            request = ManualHeartRateRequest(heart_rate=heart_rate)
        except ValidationError as e:
            self.logger.info("manual_heart_rate_rejected", errors=e.error_count())
            return Result.err(e)

        event = HRReadingEvent(heart_rate=request.heart_rate, timestamp=_utc_now_iso(), source="manual")
        await self.bus.publish(HR_READING, event)
        return Result.ok(event)


class SimulatedVitalsFeed:
    """
    Simulated real-time heart-rate stream.

    Publishes one sample every ``interval_seconds`` until stopped.
    """

    def __init__(
        self,
        bus: EventBus,
        interval_seconds: float = 2.0,
        bpm_range: tuple[int, int] = (60, 99),
        source: str = "vitals-feed",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.bus = bus
        self.interval_seconds = interval_seconds
        self.bpm_range = bpm_range
        self.source = source
        self._task: asyncio.Task[None] | None = None
        self.logger = logger.bind(producer="vitals_feed", source=source)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def emit_once(self) -> HRReadingEvent:
        low, high = self.bpm_range
        event = HRReadingEvent(heart_rate=random.randint(low, high), timestamp=_utc_now_iso(), source=self.source)
        await self.bus.publish(HR_READING, event)
        return event

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"vitals-feed:{self.source}")
        self.logger.info("vitals_feed_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("vitals_feed_stopped")

    async def _run(self) -> None:
        while True:
            await self.emit_once()
            await asyncio.sleep(self.interval_seconds)


class BloodPressureSource(Protocol):
    """
    Protocol for anything that can produce a reading for one device.

    Real integrations (cloud APIs, BLE) and the simulation below share this
    shape; none of them inherit from it.
    """

    device: Device

    async def read_blood_pressure(self) -> Result[BPReadingEvent, Exception]:
        """Read once. Failures come back as Result.err, never raised."""
        ...


class SimulatedWearableDevice:
    """
    Simulated wearable with realistic latency and a small failure rate.

    In production: this would call the vendor API or read a GATT characteristic.
    """

    def __init__(
        self,
        device: Device,
        failure_rate: float = 0.05,
        latency_seconds: tuple[float, float] = (0.1, 0.5),
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.device = device
        self.failure_rate = failure_rate
        self.latency_seconds = latency_seconds
        self.logger = logger.bind(device_id=device.id, device_name=device.name)

    async def read_blood_pressure(self) -> Result[BPReadingEvent, Exception]:
        try:
            await asyncio.sleep(random.uniform(*self.latency_seconds))

            if random.random() < self.failure_rate:
                raise ConnectionError(f"Failed to read from {self.device.name}")

            systolic = random.randint(105, 165)
            diastolic = random.randint(65, min(systolic - 20, 105))
            event = BPReadingEvent(
                systolic=systolic,
                diastolic=diastolic,
                timestamp=_utc_now_iso(),
                source="device",
                device_id=self.device.id,
            )
            self.logger.debug("device_reading_received", systolic=systolic, diastolic=diastolic)
            return Result.ok(event)

        except Exception as e:
            self.logger.warning("device_read_failed", error=str(e))
            return Result.err(e)


class PollerConfig(BaseModel):
    """Polling cadence with validation."""

    interval_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Delay between polling attempts for one device, in seconds.",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for a single polling attempt, in seconds.",
    )


class WearablePoller:
    """
    Polls registered devices and publishes their readings and errors.

    Each device has one task, so at most one attempt is in flight per device
    and readings are published in arrival order. Failed attempts are reported
    on ``reading.bp.error`` and not retried early; the next attempt happens on
    the normal cadence.
    """

    def __init__(self, bus: EventBus, config: PollerConfig | None = None) -> None:
        self.bus = bus
        self.config = config or PollerConfig()
        self.sources: dict[str, BloodPressureSource] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self.last_errors: dict[str, str] = {}
        self.logger = logger.bind(component="wearable_poller")

    def add_source(self, source: BloodPressureSource) -> None:
        """Register a device source. Validates it implements the source protocol."""
        if not hasattr(source, "read_blood_pressure") or not hasattr(source, "device"):
            raise TypeError(f"Source {source} must implement BloodPressureSource")
        self.sources[source.device.id] = source
        self.logger.info("source_added", device_id=source.device.id, source_type=type(source).__name__)

    def is_polling(self, device_id: str) -> bool:
        task = self._tasks.get(device_id)
        return task is not None and not task.done()

    def start(self, device_id: str) -> None:
        if device_id not in self.sources:
            raise KeyError(f"No source registered for device {device_id}")
        if self.is_polling(device_id):
            return
        self.last_errors.pop(device_id, None)
        self._tasks[device_id] = asyncio.create_task(self._poll_loop(device_id), name=f"poll:{device_id}")
        self.logger.info(
            "polling_started", device_id=device_id, interval_seconds=self.config.interval_seconds
        )

    async def stop(self, device_id: str) -> None:
        """Stop polling a device and tell consumers its stream is closed."""
        task = self._tasks.pop(device_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("polling_stopped", device_id=device_id)
        await self.bus.publish(STREAM_CLOSED, StreamClosedEvent(device_id=device_id))

    async def stop_all(self) -> None:
        for device_id in list(self._tasks):
            await self.stop(device_id)

    async def poll_once(self, device_id: str) -> Result[BPReadingEvent, Exception]:
        """Run a single polling attempt and publish its outcome."""
        source = self.sources[device_id]
        try:
            result = await asyncio.wait_for(source.read_blood_pressure(), timeout=self.config.timeout_seconds)
        except Exception as e:
            self.logger.warning("device_read_raised", device_id=device_id, error=str(e) or type(e).__name__)
            result = Result.err(e)

        if result.is_ok():
            await self.bus.publish(BP_READING, result.unwrap())
        else:
            error = result.unwrap_err()
            message = str(error) or type(error).__name__
            self.last_errors[device_id] = message
            await self.bus.publish(BP_ERROR, BPErrorEvent(device_id=device_id, message=message))
        return result

    async def _poll_loop(self, device_id: str) -> None:
        while True:
            try:
                await self.poll_once(device_id)
            except Exception as e:
                self.logger.exception("unexpected_polling_error", device_id=device_id, error=str(e))
            await asyncio.sleep(self.config.interval_seconds)
