"""
Core services for the application.

This package contains the alerting pipeline and its building blocks:
classification, debouncing, suppression, persistence, the event bus and
the reading producers.
"""

from .alert_pipeline import AlertPipeline, build_pipeline
from .classifier import classify, classify_diastolic, classify_heart_rate, classify_systolic
from .debouncer import AlertDebouncer
from .event_bus import EventBus
from .notification_store import NotificationStore
from .producers import ManualEntry, SimulatedVitalsFeed, SimulatedWearableDevice, WearablePoller
from .reading_store import ReadingRepository
from .result import Result
from .scheduling import AsyncioScheduler, SystemClock, VirtualClock
from .storage import InMemoryBackend, JsonFileBackend, PersistenceStatus, StoreOutcome
from .suppression import SuppressionGate

__all__ = [
    "AlertDebouncer",
    "AlertPipeline",
    "AsyncioScheduler",
    "EventBus",
    "InMemoryBackend",
    "JsonFileBackend",
    "ManualEntry",
    "NotificationStore",
    "PersistenceStatus",
    "ReadingRepository",
    "Result",
    "SimulatedVitalsFeed",
    "SimulatedWearableDevice",
    "StoreOutcome",
    "SuppressionGate",
    "SystemClock",
    "VirtualClock",
    "WearablePoller",
    "build_pipeline",
    "classify",
    "classify_diastolic",
    "classify_heart_rate",
    "classify_systolic",
]
