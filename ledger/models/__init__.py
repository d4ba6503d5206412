"""
Data Models Package

This package contains all Pydantic models used by the borrowing ledger.
All data flowing through the engine must conform to these schemas.
"""

from ledger.models.borrowing import (
    BorrowingRecord,
    BorrowingStatus,
    Counterparty,
    Direction,
    LedgerSummary,
    OverdueSeverity,
    RecordFilter,
    RecordPage,
    RecordView,
    ReminderSettings,
    ValidationIssue,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BorrowingRecord",
    "BorrowingStatus",
    "Counterparty",
    "Direction",
    "LedgerSummary",
    "OverdueSeverity",
    "RecordFilter",
    "RecordPage",
    "RecordView",
    "ReminderSettings",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
