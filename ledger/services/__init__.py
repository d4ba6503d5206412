"""Services package."""

from ledger.services.storage import (
    AuditStorageInterface,
    BorrowingStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBorrowingStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBorrowingStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BorrowingStorageInterface",
    "ConcurrencyError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBorrowingStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryBorrowingStorage",
    "NotFoundError",
    "StorageError",
]
