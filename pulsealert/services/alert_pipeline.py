"""
Alerting pipeline for one user session.

Flow:
1. ``reading.bp.new``: persist the reading, then hand it to the debouncer
2. After the quiet period, classify the last reading of the burst
3. Alert-worthy categories pass through the suppression gate
4. Passing alerts land in the notification store, which signals ``notifications.updated``

Heart-rate samples skip the debouncer; every condition they trigger goes
through the gate on its own. Device errors are written to the feed directly.

Nothing here is fatal. The worst outcome is a missed or late alert, which is
logged.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import structlog

from pulsealert.config import AlertingConfig, AppConfig, get_config
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
from pulsealert.domain.models import BloodPressureReading, HeartRateSample, Notification, NotificationKind
from pulsealert.observability import configure_logging
from pulsealert.services.classifier import bp_alert_for, classify_heart_rate, heart_rate_alert_for
from pulsealert.services.debouncer import AlertDebouncer
from pulsealert.services.event_bus import EventBus
from pulsealert.services.notification_store import NotificationStore
from pulsealert.services.reading_store import ReadingRepository
from pulsealert.services.scheduling import AsyncioScheduler, Clock, Scheduler, SystemClock
from pulsealert.services.storage import InMemoryBackend, JsonFileBackend, StorageBackend, StoreOutcome
from pulsealert.services.suppression import SuppressionGate

logger = structlog.get_logger(__name__)

DEVICE_ERROR_TITLE = "Device Error"


class AlertPipeline:
    """
    Wires producers' events to classified, rate-limited notifications.

    Construct one per user session; ``stop`` (or leaving ``session()``)
    unsubscribes from the bus and cancels any pending debounce timers so no
    alert fires for a session that has ended.
    """

    def __init__(
        self,
        user_id: str,
        bus: EventBus,
        store: NotificationStore,
        readings: ReadingRepository,
        gate: SuppressionGate,
        scheduler: Scheduler | None = None,
        alerting: AlertingConfig | None = None,
    ) -> None:
        self.user_id = user_id
        self.bus = bus
        self.store = store
        self.readings = readings
        self.gate = gate
        self.alerting = alerting or AlertingConfig()
        self.debouncer = AlertDebouncer(
            self.evaluate_reading,
            scheduler=scheduler or AsyncioScheduler(),
            delay_seconds=self.alerting.debounce_seconds,
        )
        self._unsubscribers: list[Callable[[], None]] = []
        self._is_running = False
        self.logger = logger.bind(component="alert_pipeline", user_id=user_id)

    @property
    def running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        if self._is_running:
            return
        if self.debouncer.disposed:
            raise RuntimeError("Pipeline was stopped - build a new one for the next session")
        self._unsubscribers = [
            self.bus.subscribe(BP_READING, self.handle_bp_reading),
            self.bus.subscribe(BP_ERROR, self.handle_device_error),
            self.bus.subscribe(HR_READING, self.handle_heart_rate),
            self.bus.subscribe(STREAM_CLOSED, self.handle_stream_closed),
        ]
        self._is_running = True
        self.logger.info("alert_pipeline_started", debounce_seconds=self.alerting.debounce_seconds)

    async def stop(self) -> None:
        """Unsubscribe and drop pending work. Already-running evaluations are cancelled."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.debouncer.dispose()
        self.gate.reset()
        self._is_running = False
        self.logger.info("alert_pipeline_stopped")

    @asynccontextmanager
    async def session(self) -> AsyncIterator["AlertPipeline"]:
        """Run the pipeline for the duration of a block, tearing down even on error."""
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def wait_idle(self) -> None:
        await self.debouncer.wait_idle()

    async def notifications(self) -> list[Notification]:
        return await self.store.list()

    async def handle_bp_reading(self, event: BPReadingEvent) -> None:
        # Every reading is stored; only the alert decision is debounced.
        outcome = await self.readings.save(
            self.user_id,
            event.systolic,
            event.diastolic,
            notes=event.notes,
            source=event.source,
            device_id=event.device_id,
            timestamp=event.recorded_at,
        )
        if outcome.is_failed:
            self.logger.error("reading_not_recorded", error=str(outcome.error))
            return
        self.debouncer.on_reading(outcome.value)

    async def evaluate_reading(self, reading: BloodPressureReading) -> None:
        """Classify the last reading of a burst and raise an alert if warranted."""
        alert = bp_alert_for(reading)
        if alert is None:
            self.logger.debug("reading_normal", reading_id=reading.id)
            return

        title, message = alert
        await self._fire_alert(title, message, gated=self.alerting.suppress_bp_alerts)

    async def handle_heart_rate(self, event: HRReadingEvent) -> None:
        sample = HeartRateSample(value=event.heart_rate, timestamp=event.recorded_at, source=event.source)
        conditions = classify_heart_rate(
            sample.value,
            high_bpm=self.alerting.high_heart_rate_bpm,
            irregular_low_bpm=self.alerting.irregular_low_bpm,
            irregular_high_bpm=self.alerting.irregular_high_bpm,
        )
        for condition in conditions:
            title, message = heart_rate_alert_for(condition, sample.value, sample.source)
            await self._fire_alert(title, message)

    async def handle_device_error(self, event: BPErrorEvent) -> None:
        message = f"Device {event.device_id} error: {event.message or 'Unknown error'}"
        self.logger.warning("device_error_reported", device_id=event.device_id, error=event.message)
        await self.store.add(NotificationKind.ALERT, DEVICE_ERROR_TITLE, message)

    async def handle_stream_closed(self, event: StreamClosedEvent) -> None:
        self.debouncer.cancel(event.device_id)

    async def _fire_alert(self, title: str, message: str, gated: bool = True) -> StoreOutcome[Notification] | None:
        # Check and record happen together, before any await.
        if gated and not self.gate.try_fire(title):
            return None

        outcome = await self.store.add(NotificationKind.ALERT, title, message)
        self.logger.info("alert_generated", title=title, status=outcome.status.value)
        return outcome


def build_backend(config: AppConfig) -> StorageBackend:
    if config.storage.backend == "memory":
        return InMemoryBackend()
    return JsonFileBackend(Path(config.storage.data_dir))


def build_pipeline(
    config: AppConfig | None = None,
    user_id: str | None = None,
    *,
    backend: StorageBackend | None = None,
    bus: EventBus | None = None,
    clock: Clock | None = None,
    scheduler: Scheduler | None = None,
) -> AlertPipeline:
    """Assemble a pipeline and its collaborators from configuration."""
    config = config or get_config()
    configure_logging(config.logging.level, config.logging.format)
    user_id = user_id or config.user_id
    backend = backend or build_backend(config)
    bus = bus or EventBus()

    store = NotificationStore(
        backend,
        user_id,
        bus=bus,
        max_notifications=config.storage.max_notifications,
    )
    gate = SuppressionGate(
        clock=clock or SystemClock(),
        window_seconds=config.alerting.suppression_window_seconds,
    )
    return AlertPipeline(
        user_id,
        bus,
        store,
        ReadingRepository(backend),
        gate,
        scheduler=scheduler,
        alerting=config.alerting,
    )
