"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every rejected attempt is logged.
This provides:
1. A traceable history for each balance
2. Debugging capability for disputed payments
3. Visibility into validation failures and write conflicts

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a broken audit store never fails a payment)
- Supports correlation IDs to trace the events of one engine call
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.models.borrowing import BorrowingRecord, BorrowingStatus, ValidationIssue
from ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(
        self,
        record: BorrowingRecord,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new ledger entry."""
        await self.log(AuditEventBuilder.record_created(record, correlation_id))

    async def log_payment_applied(
        self,
        record: BorrowingRecord,
        payment: Decimal,
        previous_remaining: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a settled payment."""
        await self.log(AuditEventBuilder.payment_applied(
            record=record,
            payment=payment,
            previous_remaining=previous_remaining,
            correlation_id=correlation_id,
        ))

    async def log_due_date_updated(
        self,
        record: BorrowingRecord,
        previous_due_date: Optional[datetime],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.due_date_updated(
            record=record,
            previous_due_date=previous_due_date,
            correlation_id=correlation_id,
        ))

    async def log_status_overridden(
        self,
        record: BorrowingRecord,
        previous_status: BorrowingStatus,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.status_overridden(
            record=record,
            previous_status=previous_status,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(
        self,
        owner: str,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(owner, record_id, correlation_id))

    async def log_validation_failed(
        self,
        owner: str,
        operation: str,
        issues: list[ValidationIssue],
        record_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rejected input."""
        await self.log(AuditEventBuilder.validation_failed(
            owner=owner,
            operation=operation,
            issues=[issue.model_dump() for issue in issues],
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_record_not_found(
        self,
        owner: str,
        record_id: UUID,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_not_found(
            owner=owner,
            record_id=record_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_concurrency_conflict(
        self,
        owner: str,
        record_id: UUID,
        expected_version: int,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.concurrency_conflict(
            owner=owner,
            record_id=record_id,
            expected_version=expected_version,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    The engine creates one per call and passes it to every event
    that call produces.
    """
    return uuid4()
