"""
Domain models for vital-sign alerting.

These models represent the core concepts of the pipeline and are framework-agnostic.
They use Pydantic for validation; readings and derived statuses are immutable.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

ReadingSource = Literal["manual", "device"]


def assume_utc(value: datetime) -> datetime:
    """Treat offset-less timestamps as UTC so stored values always compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(assume_utc)]


class BPCategory(str, Enum):
    """Blood-pressure severity categories, least to most severe."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    STAGE1 = "stage1"
    STAGE2 = "stage2"
    CRISIS = "crisis"

    @property
    def rank(self) -> int:
        return _CATEGORY_ORDER.index(self)


_CATEGORY_ORDER = (
    BPCategory.NORMAL,
    BPCategory.ELEVATED,
    BPCategory.STAGE1,
    BPCategory.STAGE2,
    BPCategory.CRISIS,
)


class HeartRateAlert(str, Enum):
    """Heart-rate conditions that can fire independently for one sample."""

    HIGH = "high"
    IRREGULAR = "irregular"


class NotificationKind(str, Enum):
    ALERT = "alert"
    INFO = "info"


class BPStatus(BaseModel):
    """Derived classification of a reading. Recomputed on demand, never stored."""

    model_config = ConfigDict(frozen=True)

    category: BPCategory
    message: str
    severity_rank: int = Field(ge=0, le=4)


class BloodPressureReading(BaseModel):
    """A persisted blood-pressure reading owned by one user."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    systolic: int
    diastolic: int
    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    date: str = Field(description="Local calendar date, YYYY-MM-DD")
    time: str = Field(description="Local wall time, HH:MM:SS")
    notes: str | None = None
    source: ReadingSource = "manual"
    device_id: str | None = None


class HeartRateSample(BaseModel):
    """Ephemeral heart-rate sample; consumed by the pipeline only."""

    model_config = ConfigDict(frozen=True)

    value: int
    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    source: str | None = None


class Notification(BaseModel):
    """Entry in the notification feed."""

    id: str
    kind: NotificationKind
    title: str
    message: str
    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    read: bool = False


class Device(BaseModel):
    """A wearable device as reported by the device layer. Read-only to the core."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: Literal["smartwatch", "bp_monitor", "fitness_band", "other"] = "other"
    connected: bool = True
