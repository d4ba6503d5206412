"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The engine needs exactly three things from a store:
- durable per-record storage keyed by id
- an atomic compare-and-swap update per record
- listing filtered by owner, newest first
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ledger.errors import ConcurrencyError, NotFoundError
from ledger.models.borrowing import BorrowingRecord
from ledger.models.audit import AuditEvent


class BorrowingStorageInterface(ABC):
    """
    Abstract interface for ledger entry storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Every read and write is scoped by
    owner; a record owned by someone else behaves exactly like a
    missing one.
    """

    @abstractmethod
    async def insert_record(self, record: BorrowingRecord) -> BorrowingRecord:
        """
        Store a new record.

        The store sets created_at/updated_at and starts version at 1.

        Returns:
            The record as stored

        Raises:
            DuplicateError: If a record with this id already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_record(self, owner: str, record_id: UUID) -> Optional[BorrowingRecord]:
        """
        Retrieve one record.

        Returns:
            The record if it exists and belongs to owner, None otherwise
        """
        pass

    @abstractmethod
    async def list_records(self, owner: str) -> list[BorrowingRecord]:
        """
        List all of an owner's records, most recently created first.
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        record: BorrowingRecord,
        expected_version: int,
    ) -> BorrowingRecord:
        """
        Replace a stored record if it hasn't changed since it was read.

        The whole record is written in one step, so remaining and status
        can never be observed half-updated. On success the store bumps
        version and updated_at.

        Args:
            record: The record with updated fields
            expected_version: The version the caller read

        Returns:
            The record as stored

        Raises:
            NotFoundError: If the record doesn't exist for record.owner
            ConcurrencyError: If the stored version differs
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(self, owner: str, record_id: UUID) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was removed, False if there was nothing to remove
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage backend failures."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


__all__ = [
    "AuditStorageInterface",
    "BorrowingStorageInterface",
    "ConcurrencyError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
]
