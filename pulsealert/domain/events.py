"""
Event bus topics and their payload schemas.

Payload field names follow the wire names (``deviceId``, ``heartRate``); the
models also accept the snake_case attribute names.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pulsealert.domain.models import ReadingSource, assume_utc

BP_READING = "reading.bp.new"
BP_ERROR = "reading.bp.error"
HR_READING = "reading.hr.new"
STREAM_CLOSED = "reading.stream.closed"
NOTIFICATIONS_UPDATED = "notifications.updated"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


def parse_timestamp(v: str) -> datetime:
    """Parse an ISO 8601 string; a missing offset means UTC."""
    return assume_utc(datetime.fromisoformat(v.replace("Z", "+00:00")))


def _check_iso_timestamp(v: str) -> str:
    try:
        parse_timestamp(v)
    except ValueError:
        raise ValueError("Timestamp must be in ISO 8601 format")
    return v


class BPReadingEvent(_Event):
    """A new blood-pressure reading from any producer."""

    systolic: int
    diastolic: int
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    source: ReadingSource = "manual"
    device_id: str | None = Field(default=None, alias="deviceId")
    notes: str | None = None

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        return _check_iso_timestamp(v)

    @property
    def recorded_at(self) -> datetime:
        return parse_timestamp(self.timestamp)


class BPErrorEvent(_Event):
    """A failed read from a wearable device."""

    device_id: str = Field(..., alias="deviceId")
    message: str


class HRReadingEvent(_Event):
    """A heart-rate sample."""

    heart_rate: int = Field(..., alias="heartRate")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    source: str | None = None

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        return _check_iso_timestamp(v)

    @property
    def recorded_at(self) -> datetime:
        return parse_timestamp(self.timestamp)


class StreamClosedEvent(_Event):
    """A device stopped polling; its pending work should be dropped."""

    device_id: str = Field(..., alias="deviceId")


class NotificationsUpdated(_Event):
    """Signal only. Consumers re-fetch the feed."""


TOPIC_SCHEMAS: dict[str, type[BaseModel]] = {
    BP_READING: BPReadingEvent,
    BP_ERROR: BPErrorEvent,
    HR_READING: HRReadingEvent,
    STREAM_CLOSED: StreamClosedEvent,
    NOTIFICATIONS_UPDATED: NotificationsUpdated,
}
