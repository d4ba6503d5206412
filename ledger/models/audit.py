"""
Audit Models for the Borrowing Ledger

Every mutation of a ledger entry, and every rejected attempt, is logged.
This provides:
1. A history of how a balance reached its current value
2. Debugging information when a payment is disputed
3. Visibility into rejected and conflicting writes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them,
not even when the record they describe is deleted.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.borrowing import BorrowingRecord, BorrowingStatus, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Mutations
    RECORD_CREATED = "record_created"
    PAYMENT_APPLIED = "payment_applied"
    DUE_DATE_UPDATED = "due_date_updated"
    STATUS_OVERRIDDEN = "status_overridden"
    RECORD_DELETED = "record_deleted"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    RECORD_NOT_FOUND = "record_not_found"
    CONCURRENCY_CONFLICT = "concurrency_conflict"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    owner: Optional[str] = Field(
        default=None,
        description="User the affected record belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'borrowing')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one engine call"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner": self.owner,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created(record, correlation_id)
        event = AuditEventBuilder.payment_applied(record, payment, before, correlation_id)
    """

    @staticmethod
    def record_created(
        record: BorrowingRecord,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            owner=record.owner,
            entity_type="borrowing",
            entity_id=record.id,
            correlation_id=correlation_id,
            description=f"{record.direction.value.capitalize()} record opened with {record.counterparty.name}",
            details={
                "direction": record.direction.value,
                "principal": str(record.principal),
                "due_date": record.due_date.isoformat() if record.due_date else None,
            },
        )

    @staticmethod
    def payment_applied(
        record: BorrowingRecord,
        payment: Decimal,
        previous_remaining: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        absorbed = max(Decimal("0"), payment - previous_remaining)
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_APPLIED,
            owner=record.owner,
            entity_type="borrowing",
            entity_id=record.id,
            correlation_id=correlation_id,
            description=f"Payment of {payment} applied, {record.remaining} remaining",
            details={
                "payment": str(payment),
                "previous_remaining": str(previous_remaining),
                "remaining": str(record.remaining),
                "status": record.status.value,
                "absorbed_overpayment": str(absorbed),
            },
        )

    @staticmethod
    def due_date_updated(
        record: BorrowingRecord,
        previous_due_date: Optional[datetime],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUE_DATE_UPDATED,
            owner=record.owner,
            entity_type="borrowing",
            entity_id=record.id,
            correlation_id=correlation_id,
            description="Due date cleared" if record.due_date is None else "Due date updated",
            details={
                "previous_due_date": previous_due_date.isoformat() if previous_due_date else None,
                "due_date": record.due_date.isoformat() if record.due_date else None,
            },
        )

    @staticmethod
    def status_overridden(
        record: BorrowingRecord,
        previous_status: BorrowingStatus,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_OVERRIDDEN,
            owner=record.owner,
            entity_type="borrowing",
            entity_id=record.id,
            correlation_id=correlation_id,
            description=f"Status set to {record.status.value} manually",
            details={
                "previous_status": previous_status.value,
                "status": record.status.value,
                "remaining": str(record.remaining),
            },
        )

    @staticmethod
    def record_deleted(
        owner: str,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            owner=owner,
            entity_type="borrowing",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Borrowing record deleted",
        )

    @staticmethod
    def validation_failed(
        owner: str,
        operation: str,
        issues: list[dict],
        record_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="borrowing",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def record_not_found(
        owner: str,
        record_id: UUID,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="borrowing",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{operation} on unknown record",
            details={"operation": operation},
        )

    @staticmethod
    def concurrency_conflict(
        owner: str,
        record_id: UUID,
        expected_version: int,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENCY_CONFLICT,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="borrowing",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{operation} lost a concurrent update",
            details={
                "operation": operation,
                "expected_version": expected_version,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
