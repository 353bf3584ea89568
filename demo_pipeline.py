"""
End-to-end demonstration of the alerting pipeline.

This script exercises:
1. Configuration loading and validation
2. Manual entry (valid and rejected readings)
3. A burst of wearable readings collapsed into one alert
4. Heart-rate samples with suppression of repeats
5. Wearable polling with simulated device failures
6. The persisted notification feed

Run with: uv run python demo_pipeline.py
"""

import asyncio
from datetime import UTC, datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pulsealert.config import get_config, print_config_summary, validate_config
from pulsealert.domain.events import BP_READING, HR_READING, BPReadingEvent, HRReadingEvent
from pulsealert.services.alert_pipeline import build_pipeline
from pulsealert.services.classifier import classify, get_bp_recommendations
from pulsealert.services.event_bus import EventBus
from pulsealert.services.producers import (
    ManualEntry,
    PollerConfig,
    SimulatedVitalsFeed,
    SimulatedWearableDevice,
    WearablePoller,
    get_connected_devices,
)

console = Console()


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


async def demo_manual_entry(manual: ManualEntry) -> None:
    console.print("\n[bold]1. Manual entry[/bold]")

    accepted = await manual.submit_blood_pressure(128, 76, notes="after coffee")
    console.print(f"  128/76 accepted: {accepted.is_ok()}")

    rejected = await manual.submit_blood_pressure(90, 120)
    if rejected.is_err():
        console.print(f"  90/120 rejected: {rejected.unwrap_err().errors()[0]['msg']}")

    status = classify(128, 76)
    console.print(f"  128/76 is [yellow]{status.message}[/yellow]")
    for tip in get_bp_recommendations(128, 76):
        console.print(f"    - {tip}")


async def demo_burst(bus: EventBus, device_id: str) -> None:
    console.print("\n[bold]2. Burst of wearable syncs[/bold]")
    for systolic, diastolic in [(131, 82), (142, 88), (183, 101)]:
        await bus.publish(
            BP_READING,
            BPReadingEvent(
                systolic=systolic,
                diastolic=diastolic,
                timestamp=_now_iso(),
                source="device",
                device_id=device_id,
            ),
        )
        await asyncio.sleep(0.2)
    console.print("  Three readings sent 200 ms apart; only the last one is evaluated")


async def demo_heart_rate(bus: EventBus) -> None:
    console.print("\n[bold]3. Heart-rate spikes[/bold]")
    for bpm in [130, 135, 185]:
        await bus.publish(
            HR_READING, HRReadingEvent(heart_rate=bpm, timestamp=_now_iso(), source="chest-strap")
        )
    console.print("  130 and 135 share a cool-down; 185 also trips the irregular check")


async def main() -> None:
    console.print(Panel.fit("Vital-sign alerting pipeline demo", style="bold blue"))

    validate_config()
    print_config_summary()
    config = get_config()

    pipeline = build_pipeline(config)
    bus = pipeline.bus

    async with pipeline.session():
        await demo_manual_entry(ManualEntry(bus))

        devices = get_connected_devices()
        await demo_burst(bus, devices[0].id)
        await demo_heart_rate(bus)

        console.print("\n[bold]4. Wearable polling[/bold]")
        poller = WearablePoller(bus, PollerConfig(interval_seconds=0.5))
        for device in devices:
            poller.add_source(SimulatedWearableDevice(device, failure_rate=0.3))
            poller.start(device.id)

        feed = SimulatedVitalsFeed(bus, interval_seconds=config.producers.vitals_interval_seconds)
        feed.start()

        await asyncio.sleep(config.alerting.debounce_seconds + 2.0)

        await feed.stop()
        await poller.stop_all()
        await pipeline.wait_idle()

        for device_id, error in poller.last_errors.items():
            console.print(f"  [red]{device_id}[/red]: {error}")

        notifications = await pipeline.notifications()
        readings = await pipeline.readings.history(pipeline.user_id)

    table = Table(title=f"Notifications for {pipeline.user_id}")
    table.add_column("Time")
    table.add_column("Kind")
    table.add_column("Title", style="bold")
    table.add_column("Message")
    for notification in notifications:
        table.add_row(
            notification.timestamp.strftime("%H:%M:%S"),
            notification.kind.value,
            notification.title,
            notification.message,
        )
    console.print(table)
    console.print(f"Stored readings: {len(readings)}")


if __name__ == "__main__":
    asyncio.run(main())
