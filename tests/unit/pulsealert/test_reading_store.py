"""Tests for the per-user reading repository."""

from datetime import UTC, datetime, timedelta

import pytest

from pulsealert.services.reading_store import ReadingRepository, readings_key
from pulsealert.services.storage import InMemoryBackend


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def repository(backend: InMemoryBackend) -> ReadingRepository:
    return ReadingRepository(backend)


class TestReadingRepository:
    @pytest.mark.asyncio
    async def test_save_assigns_id_and_local_date(self, repository: ReadingRepository) -> None:
        recorded_at = datetime(2024, 5, 1, 8, 30, tzinfo=UTC)

        outcome = await repository.save("u1", 128, 76, notes="after coffee", timestamp=recorded_at)

        assert outcome.is_persisted
        reading = outcome.value
        assert reading.id.startswith("bp_")
        assert reading.user_id == "u1"
        assert reading.source == "manual"
        assert reading.notes == "after coffee"
        local = recorded_at.astimezone()
        assert reading.date == local.strftime("%Y-%m-%d")
        assert reading.time == local.strftime("%H:%M:%S")

    @pytest.mark.asyncio
    async def test_history_newest_first(self, repository: ReadingRepository) -> None:
        base = datetime(2024, 5, 1, 8, 0, tzinfo=UTC)
        await repository.save("u1", 120, 80, timestamp=base + timedelta(minutes=5))
        await repository.save("u1", 130, 85, timestamp=base)
        await repository.save("u1", 140, 90, timestamp=base + timedelta(minutes=10))

        history = await repository.history("u1")

        assert [r.systolic for r in history] == [140, 120, 130]
        latest = await repository.latest("u1")
        assert latest is not None and latest.systolic == 140

    @pytest.mark.asyncio
    async def test_equal_timestamps_put_later_save_first(self, repository: ReadingRepository) -> None:
        at = datetime(2024, 5, 1, 8, 0, tzinfo=UTC)
        await repository.save("u1", 120, 80, timestamp=at)
        await repository.save("u1", 130, 85, timestamp=at)

        assert [r.systolic for r in await repository.history("u1")] == [130, 120]

    @pytest.mark.asyncio
    async def test_device_readings_keep_device_id(self, repository: ReadingRepository) -> None:
        outcome = await repository.save("u1", 150, 95, source="device", device_id="00:11:22:33:44:55")

        assert outcome.value.source == "device"
        assert outcome.value.device_id == "00:11:22:33:44:55"

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, repository: ReadingRepository, backend: InMemoryBackend) -> None:
        await repository.save("alice", 120, 80)

        assert len(await repository.history("alice")) == 1
        assert await repository.history("bob") == []
        assert await repository.latest("bob") is None
        assert backend.keys() == [readings_key("alice")]

    @pytest.mark.asyncio
    async def test_delete(self, repository: ReadingRepository) -> None:
        kept = (await repository.save("u1", 120, 80)).value
        removed = (await repository.save("u1", 140, 90)).value

        assert (await repository.delete("u1", removed.id)).value is True
        assert (await repository.delete("u1", removed.id)).value is False
        assert [r.id for r in await repository.history("u1")] == [kept.id]

    @pytest.mark.asyncio
    async def test_history_survives_new_repository(self, backend: InMemoryBackend) -> None:
        await ReadingRepository(backend).save("u1", 120, 80)

        assert len(await ReadingRepository(backend).history("u1")) == 1

    @pytest.mark.asyncio
    async def test_naive_and_aware_timestamps_sort_together(self, repository: ReadingRepository) -> None:
        await repository.save("u1", 120, 80, timestamp=datetime(2024, 5, 1, 8, 0))
        await repository.save("u1", 130, 85, timestamp=datetime(2024, 5, 1, 9, 0, tzinfo=UTC))

        history = await repository.history("u1")

        assert [r.systolic for r in history] == [130, 120]
        assert history[1].timestamp == datetime(2024, 5, 1, 8, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_invalid_stored_readings_are_skipped(
        self, repository: ReadingRepository, backend: InMemoryBackend
    ) -> None:
        await backend.save(readings_key("u1"), [{"id": "legacy"}])

        assert await repository.history("u1") == []

        saved = (await repository.save("u1", 120, 80)).value
        assert [r.id for r in await repository.history("u1")] == [saved.id]
        stored = (await backend.load(readings_key("u1"))).unwrap()
        assert [record["id"] for record in stored] == [saved.id]
