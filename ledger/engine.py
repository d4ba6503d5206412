"""
Ledger Engine

Creates, mutates and queries borrowing/lending records for one owner at a
time, and enforces the settlement arithmetic.

DESIGN DECISION: The engine enforces the boundaries:
- Every call names its owner; nothing is read from ambient session state
- Remaining balance only moves down, and never below zero
- Remaining and status are written together or not at all
- Every mutation and every rejection is audited

Concurrency: mutations of one record are serialized by a per-record
asyncio.Lock, so two payments against the same record run one after the
other and the second sees the first. The store's compare-and-swap on
version catches writers outside this engine instance; those surface as
ConcurrencyError and are never retried here. A lock lives only while some
call holds or waits on it.
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from ledger.audit import AuditLogger, create_correlation_id
from ledger.config import get_settings
from ledger.errors import ConcurrencyError, NotFoundError, ValidationError
from ledger.models.borrowing import (
    BorrowingRecord,
    BorrowingStatus,
    Counterparty,
    Direction,
    LedgerSummary,
    RecordFilter,
    RecordPage,
    ReminderSettings,
    ValidationIssue,
    parse_due_date,
)
from ledger.queries import filter_records, is_reminder_due, paginate, summarize
from ledger.services.storage import (
    AuditStorageInterface,
    BorrowingStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBorrowingStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBorrowingStorage,
    StorageError,
)
from ledger.validation import LedgerValidator


logger = structlog.get_logger("ledger.engine")

DueDate = Union[datetime, str, None]


class LedgerEngine:
    """
    The borrowing ledger service.

    Operations:
        create / create_from_api  open a ledger entry
        get / list                 read entries
        apply_payment              settle part or all of the balance
        update_due_date            set or clear the due date
        set_status                 manual status override
        delete                     hard removal
        summary / list_view / reminders_due   derived-state queries
    """

    def __init__(
        self,
        storage: Optional[BorrowingStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._storage = storage or InMemoryBorrowingStorage()
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
        self._settings = get_settings().app
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _record_lock(self, record_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_id] = lock
        return lock

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _reject(
        self,
        owner: str,
        operation: str,
        issues: list[ValidationIssue],
        correlation_id: UUID,
        record_id: Optional[UUID] = None,
    ) -> None:
        await self._audit_logger.log_validation_failed(
            owner=owner,
            operation=operation,
            issues=issues,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        raise ValidationError(issues)

    async def _load(
        self,
        owner: str,
        record_id: UUID,
        operation: str,
        correlation_id: UUID,
    ) -> BorrowingRecord:
        record = await self._storage.get_record(owner, record_id)
        if record is None:
            await self._audit_logger.log_record_not_found(
                owner=owner,
                record_id=record_id,
                operation=operation,
                correlation_id=correlation_id,
            )
            raise NotFoundError(record_id)
        return record

    async def _mutate(
        self,
        owner: str,
        record_id: UUID,
        operation: str,
        correlation_id: UUID,
        change: Callable[[BorrowingRecord], dict[str, Any]],
    ) -> tuple[BorrowingRecord, BorrowingRecord]:
        """
        Read-modify-write one record under its lock.

        change() receives the current record and returns the fields to
        replace. Returns (before, after).
        """
        async with self._record_lock(record_id):
            before = await self._load(owner, record_id, operation, correlation_id)
            candidate = before.model_copy(update=change(before))
            try:
                after = await self._storage.update_record(
                    candidate,
                    expected_version=before.version,
                )
            except ConcurrencyError:
                await self._audit_logger.log_concurrency_conflict(
                    owner=owner,
                    record_id=record_id,
                    expected_version=before.version,
                    operation=operation,
                    correlation_id=correlation_id,
                )
                raise
            except NotFoundError:
                # Deleted between read and write
                await self._audit_logger.log_record_not_found(
                    owner=owner,
                    record_id=record_id,
                    operation=operation,
                    correlation_id=correlation_id,
                )
                raise
            except StorageError as e:
                await self._audit_logger.log_error(
                    error_type="storage",
                    error_message=str(e),
                    details={"operation": operation, "record_id": str(record_id)},
                    correlation_id=correlation_id,
                )
                raise
            return before, after

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create(
        self,
        owner: str,
        direction: Union[Direction, str],
        counterparty_name: str,
        principal: Union[Decimal, int, float, str],
        counterparty_contact: Optional[str] = None,
        due_date: DueDate = None,
        notes: Optional[str] = None,
        reminder: Optional[ReminderSettings] = None,
    ) -> BorrowingRecord:
        """
        Open a new ledger entry.

        The entry starts with remaining == principal and status PENDING.

        Raises:
            ValidationError: If direction, counterparty name or principal
                are missing or out of range
        """
        correlation_id = create_correlation_id()

        issues = self._validator.validate_new_entry(
            direction=direction,
            counterparty_name=counterparty_name,
            principal=principal,
            reminder_days_before=reminder.days_before if reminder else None,
        )
        if issues:
            await self._reject(owner, "create", issues, correlation_id)

        amount = self._validator.to_decimal(principal)
        try:
            record = BorrowingRecord(
                owner=owner,
                direction=Direction(direction),
                counterparty=Counterparty(
                    name=counterparty_name,
                    contact=counterparty_contact or "",
                ),
                principal=amount,
                remaining=amount,
                due_date=due_date,
                notes=notes or "",
                reminder=reminder or ReminderSettings(
                    days_before=self._settings.default_reminder_days,
                ),
                status=BorrowingStatus.PENDING,
            )
        except (PydanticValidationError, ValueError) as e:
            issues = _issues_from_exception(e)
            await self._reject(owner, "create", issues, correlation_id)

        stored = await self._storage.insert_record(record)
        await self._audit_logger.log_record_created(stored, correlation_id)
        logger.info(
            "borrowing_created",
            owner=owner,
            record_id=str(stored.id),
            direction=stored.direction.value,
        )
        return stored

    async def create_from_api(self, owner: str, payload: dict) -> BorrowingRecord:
        """
        Open an entry from the web client's JSON body.

        Expected shape:
            {"type": "borrowed", "counterparty": {"name": ..., "contact": ...},
             "amount": 1000, "dueDate": "2024-05-01", "notes": "...",
             "reminder": {"enabled": true, "daysBefore": 3}}
        """
        counterparty = payload.get("counterparty")
        if not isinstance(counterparty, dict):
            counterparty = {}
        reminder_data = payload.get("reminder")
        if not isinstance(reminder_data, dict):
            reminder_data = {}

        days_before = reminder_data.get("daysBefore")
        if days_before is None:
            days_before = self._settings.default_reminder_days

        issues = self._validator.validate_new_entry(
            direction=payload.get("type"),
            counterparty_name=counterparty.get("name"),
            principal=payload.get("amount"),
            reminder_days_before=days_before,
        )
        if issues:
            await self._reject(owner, "create", issues, create_correlation_id())

        return await self.create(
            owner=owner,
            direction=payload["type"],
            counterparty_name=counterparty["name"],
            counterparty_contact=counterparty.get("contact"),
            principal=payload["amount"],
            due_date=payload.get("dueDate") or None,
            notes=payload.get("notes"),
            reminder=ReminderSettings(
                enabled=bool(reminder_data.get("enabled", False)),
                days_before=days_before,
            ),
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, owner: str, record_id: UUID) -> BorrowingRecord:
        """Fetch one entry. NotFoundError if absent or not owned by owner."""
        return await self._load(owner, record_id, "get", create_correlation_id())

    async def list(self, owner: str) -> list[BorrowingRecord]:
        """All of an owner's entries, most recently created first."""
        return await self._storage.list_records(owner)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def apply_payment(
        self,
        owner: str,
        record_id: UUID,
        payment_amount: Union[Decimal, int, float, str],
    ) -> BorrowingRecord:
        """
        Settle part or all of an entry's balance.

        new remaining = max(0, remaining - payment). An overpayment is
        clamped to zero remaining; the excess is not recorded anywhere.
        Status becomes PAID at zero and PARTIAL otherwise.

        Raises:
            ValidationError: If payment_amount is not a positive number
            NotFoundError: If the record is absent or not owned by owner
            ConcurrencyError: If the record changed underneath us
        """
        correlation_id = create_correlation_id()

        issues = self._validator.validate_payment(payment_amount)
        if issues:
            await self._reject(owner, "apply_payment", issues, correlation_id, record_id)
        payment = self._validator.to_decimal(payment_amount)

        def settle(record: BorrowingRecord) -> dict[str, Any]:
            remaining = max(Decimal("0"), record.remaining - payment)
            status = BorrowingStatus.PAID if remaining == 0 else BorrowingStatus.PARTIAL
            return {"remaining": remaining, "status": status}

        before, after = await self._mutate(
            owner, record_id, "apply_payment", correlation_id, settle
        )
        await self._audit_logger.log_payment_applied(
            record=after,
            payment=payment,
            previous_remaining=before.remaining,
            correlation_id=correlation_id,
        )
        return after

    async def update_due_date(
        self,
        owner: str,
        record_id: UUID,
        new_due_date: DueDate,
    ) -> BorrowingRecord:
        """
        Set the due date, or clear it with None.

        Clearing the due date also switches off overdue and reminder
        tracking for the entry.
        """
        correlation_id = create_correlation_id()

        try:
            due_date = parse_due_date(new_due_date)
        except ValueError:
            due_date = None
            await self._reject(owner, "update_due_date", [ValidationIssue(
                field="due_date",
                issue_type="invalid_format",
                message="Due date must be an ISO date or datetime",
            )], correlation_id, record_id)
        if due_date is not None and not isinstance(due_date, datetime):
            await self._reject(owner, "update_due_date", [ValidationIssue(
                field="due_date",
                issue_type="invalid_format",
                message="Due date must be an ISO date or datetime",
            )], correlation_id, record_id)

        before, after = await self._mutate(
            owner,
            record_id,
            "update_due_date",
            correlation_id,
            lambda record: {"due_date": due_date},
        )
        await self._audit_logger.log_due_date_updated(
            record=after,
            previous_due_date=before.due_date,
            correlation_id=correlation_id,
        )
        return after

    async def set_status(
        self,
        owner: str,
        record_id: UUID,
        new_status: Union[BorrowingStatus, str],
    ) -> BorrowingRecord:
        """
        Override the status directly.

        Any status may be set from any other. Remaining is deliberately
        left as it is: marking an entry PAID does not zero the balance,
        and marking it PENDING does not restore the principal. This is
        the only operation that can make status and remaining disagree.
        """
        correlation_id = create_correlation_id()

        issues = self._validator.validate_status(new_status)
        if issues:
            await self._reject(owner, "set_status", issues, correlation_id, record_id)
        status = BorrowingStatus(new_status)

        before, after = await self._mutate(
            owner,
            record_id,
            "set_status",
            correlation_id,
            lambda record: {"status": status},
        )
        await self._audit_logger.log_status_overridden(
            record=after,
            previous_status=before.status,
            correlation_id=correlation_id,
        )
        return after

    async def delete(self, owner: str, record_id: UUID) -> None:
        """
        Remove an entry permanently.

        Raises:
            NotFoundError: If there is nothing to delete, including on a
                second delete of the same record
        """
        correlation_id = create_correlation_id()

        async with self._record_lock(record_id):
            deleted = await self._storage.delete_record(owner, record_id)
            if not deleted:
                await self._audit_logger.log_record_not_found(
                    owner=owner,
                    record_id=record_id,
                    operation="delete",
                    correlation_id=correlation_id,
                )
                raise NotFoundError(record_id)

        await self._audit_logger.log_record_deleted(owner, record_id, correlation_id)

    # -------------------------------------------------------------------------
    # Derived-state queries
    # -------------------------------------------------------------------------

    async def summary(self, owner: str, now: datetime) -> LedgerSummary:
        """Balances owed in each direction, plus overdue totals, as of now."""
        return summarize(await self.list(owner), now)

    async def list_view(
        self,
        owner: str,
        now: datetime,
        record_filter: Union[RecordFilter, str] = RecordFilter.ALL,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> RecordPage:
        """
        One page of entries matching a dashboard filter, with derived state.

        page_size defaults to the configured list_page_size.
        """
        record_filter = RecordFilter(record_filter)
        records = filter_records(await self.list(owner), record_filter, now)
        return paginate(
            records,
            now,
            page=page,
            page_size=page_size or self._settings.list_page_size,
            record_filter=record_filter,
        )

    async def reminders_due(self, owner: str, now: datetime) -> list[BorrowingRecord]:
        """Entries whose reminder window contains now."""
        return [r for r in await self.list(owner) if is_reminder_due(r, now)]


def _issues_from_exception(error: Exception) -> list[ValidationIssue]:
    """Turn a model construction failure into validation issues."""
    if isinstance(error, PydanticValidationError):
        return [
            ValidationIssue(
                field=".".join(str(part) for part in err["loc"]) or "record",
                issue_type=err["type"],
                message=err["msg"],
            )
            for err in error.errors()
        ]
    return [ValidationIssue(field="record", issue_type="invalid_value", message=str(error))]


def create_ledger_engine(
    use_storage: bool = True,
) -> tuple[LedgerEngine, Optional[GoogleSheetsClient]]:
    """
    Factory function to create a ready-to-use engine.

    Args:
        use_storage: Whether to honour the configured storage backend.
                    Set to False to force in-memory storage.

    Returns:
        (engine, sheets_client) - sheets_client is None unless the
        Google Sheets backend was configured and came up.
    """
    settings = get_settings().app

    sheets_client = None
    storage: BorrowingStorageInterface = InMemoryBorrowingStorage()
    audit_storage: AuditStorageInterface = InMemoryAuditStorage()

    if use_storage and settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            storage = GoogleSheetsBorrowingStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
            sheets_client = None

    engine = LedgerEngine(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
    )
    return engine, sheets_client
