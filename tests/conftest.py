"""
Shared fixtures for the ledger test suite.

No external services are touched: storage is in-memory, and the Google
Sheets backend is exercised against a fake worksheet.
"""

from datetime import datetime, timezone

import pytest

from ledger.audit import AuditLogger
from ledger.config import get_settings
from ledger.engine import LedgerEngine
from ledger.services.storage import InMemoryAuditStorage, InMemoryBorrowingStorage
from ledger.services.storage.google_sheets import AUDIT_COLUMNS, BORROWING_COLUMNS


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate every test from the developer's environment and cached settings."""
    for name in (
        "STORAGE_BACKEND",
        "DEFAULT_REMINDER_DAYS",
        "MAX_PRINCIPAL_AMOUNT",
        "LIST_PAGE_SIZE",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def owner():
    return "user-alice"


@pytest.fixture
def other_owner():
    return "user-bob"


@pytest.fixture
def storage():
    return InMemoryBorrowingStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def engine(storage, audit_storage):
    return LedgerEngine(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
    )


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage backend."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def update(self, range_name=None, values=None, **kwargs):
        first_cell = range_name.split(":")[0]
        row_number = int(first_cell.lstrip("ABCDEFGHIJKLMNOPQRSTUVWXYZ"))
        self.rows[row_number - 1] = [str(value) for value in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient without any network access."""

    def __init__(self):
        self.borrowings = FakeWorksheet(BORROWING_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_borrowings_sheet(self):
        return self.borrowings

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()
