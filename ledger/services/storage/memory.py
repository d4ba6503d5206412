"""
In-Memory Storage Implementation

Used by the test suite and as the default backend for local use.
Records are kept in a dict keyed by id; a single asyncio.Lock makes
every compare-and-swap atomic with respect to other coroutines.

Records are copied on the way in and on the way out, so a caller
holding a returned record can never mutate stored state by accident.
"""

import asyncio
import itertools
from typing import Optional
from uuid import UUID

from ledger.models.borrowing import BorrowingRecord, utc_now
from ledger.models.audit import AuditEvent
from ledger.services.storage.interface import (
    AuditStorageInterface,
    BorrowingStorageInterface,
    ConcurrencyError,
    DuplicateError,
    NotFoundError,
)


class InMemoryBorrowingStorage(BorrowingStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self):
        self._records: dict[UUID, BorrowingRecord] = {}
        # Insertion order breaks created_at ties
        self._sequence: dict[UUID, int] = {}
        self._counter = itertools.count()
        self._lock = asyncio.Lock()

    async def insert_record(self, record: BorrowingRecord) -> BorrowingRecord:
        async with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"Borrowing record already exists: {record.id}")

            now = utc_now()
            stored = record.model_copy(
                update={"created_at": now, "updated_at": now, "version": 1},
                deep=True,
            )
            self._records[stored.id] = stored
            self._sequence[stored.id] = next(self._counter)
            return stored.model_copy(deep=True)

    async def get_record(self, owner: str, record_id: UUID) -> Optional[BorrowingRecord]:
        record = self._records.get(record_id)
        if record is None or record.owner != owner:
            return None
        return record.model_copy(deep=True)

    async def list_records(self, owner: str) -> list[BorrowingRecord]:
        records = [r for r in self._records.values() if r.owner == owner]
        records.sort(
            key=lambda r: (r.created_at, self._sequence[r.id]),
            reverse=True,
        )
        return [r.model_copy(deep=True) for r in records]

    async def update_record(
        self,
        record: BorrowingRecord,
        expected_version: int,
    ) -> BorrowingRecord:
        async with self._lock:
            current = self._records.get(record.id)
            if current is None or current.owner != record.owner:
                raise NotFoundError(record.id)
            if current.version != expected_version:
                raise ConcurrencyError(record.id, expected_version)

            stored = record.model_copy(
                update={
                    "created_at": current.created_at,
                    "updated_at": utc_now(),
                    "version": current.version + 1,
                },
                deep=True,
            )
            self._records[stored.id] = stored
            return stored.model_copy(deep=True)

    async def delete_record(self, owner: str, record_id: UUID) -> bool:
        async with self._lock:
            current = self._records.get(record_id)
            if current is None or current.owner != owner:
                return False
            del self._records[record_id]
            del self._sequence[record_id]
            return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
