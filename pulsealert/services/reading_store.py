"""Per-user blood-pressure reading history."""

import uuid
from datetime import UTC, datetime

import structlog
from pydantic import TypeAdapter

from pulsealert.domain.models import BloodPressureReading, ReadingSource, assume_utc
from pulsealert.services.storage import PersistedCollection, Record, StorageBackend, StoreOutcome

logger = structlog.get_logger(__name__)

_readings = TypeAdapter(list[BloodPressureReading])


def readings_key(user_id: str) -> str:
    return f"bp_readings:{user_id}"


class ReadingRepository:
    """
    Stores every reading a user records, manual or from a device.

    Readings are immutable; the only removal path is ``delete``. Storage
    failures degrade to in-memory history the same way the notification
    feed does.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend
        self._collections: dict[str, PersistedCollection] = {}
        self.logger = logger.bind(component="reading_repository")

    def _collection(self, user_id: str) -> PersistedCollection:
        if user_id not in self._collections:
            self._collections[user_id] = PersistedCollection(
                self.backend, readings_key(user_id), schema=BloodPressureReading
            )
        return self._collections[user_id]

    async def save(
        self,
        user_id: str,
        systolic: int,
        diastolic: int,
        *,
        notes: str | None = None,
        source: ReadingSource = "manual",
        device_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> StoreOutcome[BloodPressureReading]:
        recorded_at = assume_utc(timestamp or datetime.now(UTC))
        local = recorded_at.astimezone()
        reading = BloodPressureReading(
            id=f"bp_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            systolic=systolic,
            diastolic=diastolic,
            timestamp=recorded_at,
            date=local.strftime("%Y-%m-%d"),
            time=local.strftime("%H:%M:%S"),
            notes=notes,
            source=source,
            device_id=device_id,
        )

        def change(records: list[Record]) -> tuple[list[Record], BloodPressureReading]:
            return [*records, reading.model_dump(mode="json")], reading

        outcome = await self._collection(user_id).mutate(change)
        self.logger.info(
            "reading_saved",
            user_id=user_id,
            reading_id=reading.id,
            source=source,
            device_id=device_id,
            status=outcome.status.value,
        )
        return outcome

    async def history(self, user_id: str) -> list[BloodPressureReading]:
        """All readings for a user, newest first."""
        records = await self._collection(user_id).snapshot()
        readings = _readings.validate_python(records)
        return sorted(reversed(readings), key=lambda r: r.timestamp, reverse=True)

    async def latest(self, user_id: str) -> BloodPressureReading | None:
        readings = await self.history(user_id)
        return readings[0] if readings else None

    async def delete(self, user_id: str, reading_id: str) -> StoreOutcome[bool]:
        def change(records: list[Record]) -> tuple[list[Record], bool]:
            kept = [record for record in records if record.get("id") != reading_id]
            return kept, len(kept) != len(records)

        outcome = await self._collection(user_id).mutate(change)
        if outcome.value:
            self.logger.info("reading_deleted", user_id=user_id, reading_id=reading_id)
        return outcome
