"""
Per-user notification feed.

Entries are prepended on ``add`` and listed newest first. Every mutation is
persisted through a ``PersistedCollection`` and followed by a
``notifications.updated`` signal on the event bus.

Known degradation: if storage is unavailable (disk full, permission denied,
corrupt file) mutations still apply to the in-memory feed for the current
session and come back as ``degraded`` outcomes. Stored entries that no longer
validate are dropped from the feed on load. Both are logged, not raised.
"""

from __future__ import annotations

import itertools
import re
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import TypeAdapter

from pulsealert.domain.events import NOTIFICATIONS_UPDATED, NotificationsUpdated
from pulsealert.domain.models import Notification, NotificationKind
from pulsealert.services.event_bus import EventBus
from pulsealert.services.storage import PersistedCollection, Record, StorageBackend, StoreOutcome

logger = structlog.get_logger(__name__)

DEFAULT_MAX_NOTIFICATIONS = 500

_notifications = TypeAdapter(list[Notification])
_ID_PATTERN = re.compile(r"^n_(\d+)_")


def notifications_key(user_id: str) -> str:
    return f"notifications:{user_id}"


class NotificationStore:
    """Durable, ordered notification collection for one user."""

    def __init__(
        self,
        backend: StorageBackend,
        user_id: str,
        bus: EventBus | None = None,
        max_notifications: int = DEFAULT_MAX_NOTIFICATIONS,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if max_notifications <= 0:
            raise ValueError("max_notifications must be positive")
        self.user_id = user_id
        self.bus = bus
        self.max_notifications = max_notifications
        self._now = now or (lambda: datetime.now(UTC))
        self._collection = PersistedCollection(backend, notifications_key(user_id), schema=Notification)
        self._seq = itertools.count(1)
        self._seq_floor = 0
        self.logger = logger.bind(component="notification_store", user_id=user_id)

    @property
    def degraded(self) -> bool:
        return self._collection.degraded

    async def add(self, kind: NotificationKind | str, title: str, message: str) -> StoreOutcome[Notification]:
        """
        Create a notification and put it at the head of the feed.

        Not idempotent: every call creates a new entry. Callers rate-limit
        through the suppression gate.
        """

        def change(records: list[Record]) -> tuple[list[Record], Notification]:
            self._advance_seq_past(records)
            notification = Notification(
                id=self._next_id(),
                kind=NotificationKind(kind),
                title=title,
                message=message,
                timestamp=self._now(),
                read=False,
            )
            updated = [notification.model_dump(mode="json"), *records][: self.max_notifications]
            return updated, notification

        outcome = await self._collection.mutate(change)
        if not outcome.is_failed:
            self.logger.info(
                "notification_added",
                notification_id=outcome.value.id,
                kind=outcome.value.kind.value,
                title=title,
                status=outcome.status.value,
            )
            await self._signal_updated()
        return outcome

    async def mark_read(self, notification_id: str) -> StoreOutcome[bool]:
        """Flag one entry as read. An unknown id is a no-op with value False."""

        def change(records: list[Record]) -> tuple[list[Record], bool]:
            found = False
            updated = []
            for record in records:
                if record.get("id") == notification_id and not found:
                    record = {**record, "read": True}
                    found = True
                updated.append(record)
            return updated, found

        outcome = await self._collection.mutate(change)
        if outcome.value:
            await self._signal_updated()
        return outcome

    async def mark_all_read(self) -> StoreOutcome[int]:
        def change(records: list[Record]) -> tuple[list[Record], int]:
            unread = sum(1 for record in records if not record.get("read"))
            return [{**record, "read": True} for record in records], unread

        outcome = await self._collection.mutate(change)
        if outcome.value:
            await self._signal_updated()
        return outcome

    async def clear(self, notification_id: str) -> StoreOutcome[bool]:
        def change(records: list[Record]) -> tuple[list[Record], bool]:
            updated = [record for record in records if record.get("id") != notification_id]
            return updated, len(updated) != len(records)

        outcome = await self._collection.mutate(change)
        if outcome.value:
            await self._signal_updated()
        return outcome

    async def clear_all(self) -> StoreOutcome[int]:
        def change(records: list[Record]) -> tuple[list[Record], int]:
            self._advance_seq_past(records)
            return [], len(records)

        outcome = await self._collection.mutate(change)
        if outcome.is_failed:
            return outcome
        self.logger.info("notifications_cleared", removed=outcome.value, status=outcome.status.value)
        await self._signal_updated()
        return outcome

    async def list(self) -> list[Notification]:
        """
        Entries newest first.

        Equal timestamps keep feed order, so the later insertion comes first.
        """
        records = await self._collection.snapshot()
        items = _notifications.validate_python(records)
        return sorted(items, key=lambda n: n.timestamp, reverse=True)

    async def get(self, notification_id: str) -> Notification | None:
        for notification in await self.list():
            if notification.id == notification_id:
                return notification
        return None

    async def unread_count(self) -> int:
        return sum(1 for notification in await self.list() if not notification.read)

    def _next_id(self) -> str:
        seq = next(self._seq)
        self._seq_floor = seq
        return f"n_{seq:06d}_{uuid.uuid4().hex[:7]}"

    def _advance_seq_past(self, records: list[Record]) -> None:
        # Ids stay fresh across reloads and clear_all.
        highest = self._seq_floor
        for record in records:
            match = _ID_PATTERN.match(str(record.get("id", "")))
            if match:
                highest = max(highest, int(match.group(1)))
        if highest > self._seq_floor:
            self._seq_floor = highest
            self._seq = itertools.count(highest + 1)

    async def _signal_updated(self) -> None:
        if self.bus is not None:
            await self.bus.publish(NOTIFICATIONS_UPDATED, NotificationsUpdated())
