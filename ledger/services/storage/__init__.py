"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
In-memory storage is the default; Google Sheets is the persistent backend.
"""

from ledger.services.storage.interface import (
    AuditStorageInterface,
    BorrowingStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBorrowingStorage,
)
from ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBorrowingStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BorrowingStorageInterface",
    # Exceptions
    "ConcurrencyError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBorrowingStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBorrowingStorage",
    "GoogleSheetsClient",
]
