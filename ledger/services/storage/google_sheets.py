"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: compare-and-swap is a version check immediately
  before the row write. Within one process the engine's per-record lock
  closes the gap; across processes a narrow window remains.
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import get_settings
from ledger.config.settings import GoogleSheetsSettings
from ledger.models.borrowing import (
    BorrowingRecord,
    BorrowingStatus,
    Counterparty,
    Direction,
    ReminderSettings,
    utc_now,
)
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.services.storage.interface import (
    AuditStorageInterface,
    BorrowingStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


# Column mappings for Borrowings sheet
BORROWING_COLUMNS = [
    "id",
    "owner",
    "direction",
    "counterparty_name",
    "counterparty_contact",
    "principal",
    "remaining",
    "due_date",
    "notes",
    "reminder_enabled",
    "reminder_days_before",
    "status",
    "version",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Spreadsheet column letter of the last borrowing column
_LAST_BORROWING_COLUMN = chr(ord("A") + len(BORROWING_COLUMNS) - 1)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_borrowings_sheet(self) -> gspread.Worksheet:
        """Get or create the Borrowings worksheet."""
        return self._get_or_create_sheet(
            self._settings.borrowings_sheet_name,
            BORROWING_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsBorrowingStorage(BorrowingStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One record per row. Amounts are stored as decimal strings so
    they survive the round trip exactly.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: BorrowingRecord) -> list:
        """Convert a BorrowingRecord to a spreadsheet row."""
        return [
            str(record.id),
            record.owner,
            record.direction.value,
            record.counterparty.name,
            record.counterparty.contact,
            str(record.principal),
            str(record.remaining),
            record.due_date.isoformat() if record.due_date else "",
            record.notes,
            str(record.reminder.enabled),
            str(record.reminder.days_before),
            record.status.value,
            str(record.version),
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> BorrowingRecord:
        """Convert a spreadsheet row to a BorrowingRecord."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return BorrowingRecord(
            id=UUID(safe_get(0)),
            owner=safe_get(1),
            direction=Direction(safe_get(2)),
            counterparty=Counterparty(
                name=safe_get(3),
                contact=safe_get(4),
            ),
            principal=Decimal(safe_get(5, "0")),
            remaining=Decimal(safe_get(6, "0")),
            due_date=safe_get(7) or None,
            notes=safe_get(8),
            reminder=ReminderSettings(
                enabled=safe_get(9).lower() == "true",
                days_before=int(safe_get(10, "3")),
            ),
            status=BorrowingStatus(safe_get(11, BorrowingStatus.PENDING.value)),
            version=int(safe_get(12, "1")),
            created_at=datetime.fromisoformat(safe_get(13)),
            updated_at=datetime.fromisoformat(safe_get(14)),
        )

    def _find_row(self, all_rows: list[list], record_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """Locate a record's row. Returns (1-based sheet row number, row)."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Start from 2 (row 1 is header)
            if row and row[0] == str(record_id):
                return idx, row
        return None, None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def insert_record(self, record: BorrowingRecord) -> BorrowingRecord:
        """Append a new record to Google Sheets."""
        try:
            sheet = self._client.get_borrowings_sheet()
            _, existing = self._find_row(sheet.get_all_values(), record.id)
            if existing is not None:
                raise DuplicateError(f"Borrowing record already exists: {record.id}")

            now = utc_now()
            stored = record.model_copy(
                update={"created_at": now, "updated_at": now, "version": 1}
            )
            sheet.append_row(self._record_to_row(stored), value_input_option="RAW")
            return stored
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save borrowing record: {e}")

    async def get_record(self, owner: str, record_id: UUID) -> Optional[BorrowingRecord]:
        """Retrieve a record by its ID."""
        try:
            sheet = self._client.get_borrowings_sheet()
            _, row = self._find_row(sheet.get_all_values(), record_id)
            if row is None or row[1] != owner:
                return None
            return self._row_to_record(row)
        except Exception as e:
            raise StorageError(f"Failed to get borrowing record: {e}")

    async def list_records(self, owner: str) -> list[BorrowingRecord]:
        """List an owner's records, newest first."""
        try:
            sheet = self._client.get_borrowings_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header

            records = []
            for position, row in enumerate(all_rows):
                if not row or not row[0] or row[1] != owner:
                    continue
                # Later rows were appended later, so position breaks ties
                records.append((self._row_to_record(row), position))

            records.sort(key=lambda item: (item[0].created_at, item[1]), reverse=True)
            return [record for record, _ in records]
        except Exception as e:
            raise StorageError(f"Failed to list borrowing records: {e}")

    async def update_record(
        self,
        record: BorrowingRecord,
        expected_version: int,
    ) -> BorrowingRecord:
        """Overwrite a record's row after checking its version."""
        try:
            sheet = self._client.get_borrowings_sheet()
            idx, row = self._find_row(sheet.get_all_values(), record.id)
            if row is None or row[1] != record.owner:
                raise NotFoundError(record.id)

            current = self._row_to_record(row)
            if current.version != expected_version:
                raise ConcurrencyError(record.id, expected_version)

            stored = record.model_copy(
                update={
                    "created_at": current.created_at,
                    "updated_at": utc_now(),
                    "version": current.version + 1,
                }
            )
            # Whole row in one call, so remaining and status land together
            sheet.update(
                range_name=f"A{idx}:{_LAST_BORROWING_COLUMN}{idx}",
                values=[self._record_to_row(stored)],
            )
            return stored
        except (NotFoundError, ConcurrencyError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update borrowing record: {e}")

    async def delete_record(self, owner: str, record_id: UUID) -> bool:
        """Delete a record's row."""
        try:
            sheet = self._client.get_borrowings_sheet()
            idx, row = self._find_row(sheet.get_all_values(), record_id)
            if row is None or row[1] != owner:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete borrowing record: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = [
                self._row_to_event(row)
                for row in all_rows
                if (
                    row
                    and len(row) > 6
                    and row[5] == entity_type
                    and row[6] == str(entity_id)
                )
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = [self._row_to_event(row) for row in all_rows if row and row[0]]

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
