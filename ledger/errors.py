"""
Ledger Error Taxonomy

Every failure that crosses the engine boundary is one of these.
An outer layer (HTTP, CLI) maps them to user-visible responses
with http_status_for() and never needs to inspect anything else.

DESIGN DECISION: "record does not exist" and "record belongs to someone
else" raise the same NotFoundError with the same message. Callers must
not be able to discover other users' records.
"""

from typing import Optional
from uuid import UUID

from ledger.models.borrowing import ValidationIssue


class LedgerError(Exception):
    """Base exception for classified ledger failures."""
    pass


class ValidationError(LedgerError):
    """
    Input was malformed or out of range.

    Carries the individual issues so callers can show every problem
    at once instead of one per round trip.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(summary or "Invalid input")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class NotFoundError(LedgerError):
    """Record absent, or not owned by the caller."""

    def __init__(self, record_id: Optional[UUID] = None):
        self.record_id = record_id
        super().__init__("Borrowing record not found")


class ConcurrencyError(LedgerError):
    """
    The stored record changed between read and write.

    The record is left untouched. The engine never retries on its own;
    the caller may simply repeat the operation.
    """

    def __init__(self, record_id: UUID, expected_version: int):
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"Borrowing record {record_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


_HTTP_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConcurrencyError: 409,
}


def http_status_for(error: LedgerError) -> int:
    """Map a ledger error to the status code an HTTP layer should return."""
    for error_type, status in _HTTP_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500
