"""
Persistence backends and the atomic persisted collection built on them.

Storage is best-effort. When a backend cannot load or save, the collection
keeps serving its in-memory view and reports the write as ``degraded``. It
does not retry in a loop; the next successful save writes the whole
collection and clears the degraded state.
"""

import asyncio
import copy
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from pydantic_core import from_json, to_json

from pulsealert.services.result import Result

logger = structlog.get_logger(__name__)

Record = dict[str, Any]
T = TypeVar("T")


class StorageBackend(Protocol):
    """Key to list-of-records storage."""

    async def load(self, key: str) -> Result[list[Record], Exception]: ...

    async def save(self, key: str, records: list[Record]) -> Result[None, Exception]: ...


class InMemoryBackend:
    """Process-local backend. Records are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[str, list[Record]] = {}

    async def load(self, key: str) -> Result[list[Record], Exception]:
        return Result.ok(copy.deepcopy(self._data.get(key, [])))

    async def save(self, key: str, records: list[Record]) -> Result[None, Exception]:
        self._data[key] = copy.deepcopy(records)
        return Result.ok(None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileBackend:
    """
    One JSON document per key under ``data_dir``.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written document. File I/O runs in a worker thread.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.logger = logger.bind(component="json_file_backend", data_dir=str(self.data_dir))

    def path_for(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.data_dir / f"{safe}.json"

    async def load(self, key: str) -> Result[list[Record], Exception]:
        try:
            records = await asyncio.to_thread(self._read, self.path_for(key))
            return Result.ok(records)
        except Exception as e:
            self.logger.error("storage_load_failed", key=key, error=str(e))
            return Result.err(e)

    async def save(self, key: str, records: list[Record]) -> Result[None, Exception]:
        try:
            await asyncio.to_thread(self._write, self.path_for(key), records)
            return Result.ok(None)
        except Exception as e:
            self.logger.error("storage_save_failed", key=key, error=str(e))
            return Result.err(e)

    @staticmethod
    def _read(path: Path) -> list[Record]:
        if not path.exists():
            return []
        data = from_json(path.read_bytes())
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON list in {path}")
        return data

    def _write(self, path: Path, records: list[Record]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_bytes(to_json(records, indent=2))
        os.replace(tmp, path)


class PersistenceStatus(str, Enum):
    PERSISTED = "persisted"
    DEGRADED = "degraded"  # applied in memory, not durable
    FAILED = "failed"  # rejected, nothing changed


@dataclass(frozen=True)
class StoreOutcome(Generic[T]):
    """Result of a store mutation, including how durable it is."""

    value: T
    status: PersistenceStatus
    error: Exception | None = None

    @property
    def is_persisted(self) -> bool:
        return self.status is PersistenceStatus.PERSISTED

    @property
    def is_degraded(self) -> bool:
        return self.status is PersistenceStatus.DEGRADED

    @property
    def is_failed(self) -> bool:
        return self.status is PersistenceStatus.FAILED


class PersistedCollection:
    """
    Ordered list of records for one storage key.

    Mutations are serialized with an ``asyncio.Lock``. Inside the lock the
    latest backend state is re-read before the change is applied and saved,
    so two writers sharing a key cannot lose each other's updates across an
    await. While degraded, the in-memory view is authoritative and the
    backend is not re-read.

    With a ``schema``, loaded records that fail validation are moved to
    ``rejected`` and the collection is marked degraded; the next successful
    save writes only the valid records back.
    """

    def __init__(self, backend: StorageBackend, key: str, schema: type[BaseModel] | None = None) -> None:
        self.backend = backend
        self.key = key
        self.schema = schema
        self.rejected: list[Record] = []
        self._records: list[Record] = []
        self._lock = asyncio.Lock()
        self._degraded = False
        self.logger = logger.bind(component="persisted_collection", key=key)

    @property
    def degraded(self) -> bool:
        return self._degraded

    async def snapshot(self) -> list[Record]:
        async with self._lock:
            await self._refresh()
            return list(self._records)

    async def mutate(self, change: Callable[[list[Record]], tuple[list[Record], T]]) -> StoreOutcome[T]:
        """
        Apply ``change`` to the latest records and persist the result.

        ``change`` receives a copy of the records and returns the new records
        plus a value for the caller. If it raises, nothing is applied and the
        outcome is ``failed``.
        """
        async with self._lock:
            await self._refresh()
            try:
                updated, value = change(list(self._records))
            except Exception as e:
                self.logger.warning("mutation_rejected", error=str(e))
                return StoreOutcome(value=None, status=PersistenceStatus.FAILED, error=e)  # type: ignore[arg-type]

            self._records = updated
            saved = await self.backend.save(self.key, updated)
            if saved.is_err():
                self._degraded = True
                self.logger.warning("persistence_degraded", error=str(saved.unwrap_err()))
                return StoreOutcome(value=value, status=PersistenceStatus.DEGRADED, error=saved.unwrap_err())

            if self._degraded:
                self.logger.info("persistence_recovered")
            self._degraded = False
            return StoreOutcome(value=value, status=PersistenceStatus.PERSISTED)

    async def _refresh(self) -> None:
        if self._degraded:
            return
        loaded = await self.backend.load(self.key)
        if loaded.is_err():
            self._degraded = True
            self.logger.warning("persistence_degraded", error=str(loaded.unwrap_err()))
            return
        self._records = self._valid_records(loaded.unwrap())

    def _valid_records(self, records: list[Record]) -> list[Record]:
        if self.schema is None:
            return records

        valid: list[Record] = []
        invalid: list[Record] = []
        for record in records:
            try:
                self.schema.model_validate(record)
            except ValidationError:
                invalid.append(record)
                continue
            valid.append(record)

        if invalid:
            self.rejected.extend(invalid)
            self._degraded = True
            self.logger.warning(
                "invalid_records_dropped",
                count=len(invalid),
                ids=[record.get("id") if isinstance(record, dict) else None for record in invalid],
            )
        return valid
