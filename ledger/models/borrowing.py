"""
Core Data Models for the Borrowing Ledger

These models define the schemas for every ledger entry flowing through
the system. They are designed to:
1. Enforce the monetary invariants at construction time
2. Be serializable for storage, logging and the JSON wire format
3. Keep derived (time-dependent) state out of the persisted record

DESIGN DECISION: Amounts are Decimal, never float. Sums of remaining
balances must be exact, and a payment that exactly settles a debt must
land on zero, not on 1e-13.

DESIGN DECISION: All datetimes are timezone-aware UTC. Naive values are
assumed to already be UTC and are tagged on the way in, so overdue
arithmetic never mixes aware and naive datetimes.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Direction(str, Enum):
    """
    Which way the money flows.

    BORROWED: the owner owes the counterparty.
    LENT: the counterparty owes the owner.
    """
    BORROWED = "borrowed"
    LENT = "lent"


class BorrowingStatus(str, Enum):
    """
    Settlement status of a ledger entry.

    Payments move an entry to PARTIAL or PAID. Any status can also be set
    explicitly, independent of the remaining balance.
    """
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class OverdueSeverity(str, Enum):
    """How far past its due date an unpaid entry is."""
    NORMAL = "normal"      # not overdue
    MILD = "mild"          # 1-7 days
    MODERATE = "moderate"  # 8-30 days
    SEVERE = "severe"      # more than 30 days


class RecordFilter(str, Enum):
    """Dashboard filter tabs."""
    ALL = "all"
    OWED_BY_ME = "owed-by-me"
    OWED_TO_ME = "owed-to-me"
    OVERDUE = "overdue"


# =============================================================================
# HELPERS
# =============================================================================

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_due_date(value: Any) -> Any:
    """
    Accept a datetime, a date, or an ISO string for a due date.

    A bare date (or "YYYY-MM-DD" string) means midnight UTC on that day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        if len(text) == 10:
            parsed = date.fromisoformat(text)
            return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
        return as_utc(datetime.fromisoformat(text))
    return value


def _amount_to_json(value: Decimal) -> float | int:
    """Render an amount as a JSON number, without a trailing .0 for whole values."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# =============================================================================
# VALUE OBJECTS
# =============================================================================

class Counterparty(BaseModel):
    """The other person in a borrowing or lending arrangement."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Who the money was borrowed from or lent to"
    )
    contact: str = Field(
        default="",
        max_length=200,
        description="Phone number or email, free text"
    )


class ReminderSettings(BaseModel):
    """When to start surfacing a reminder before the due date."""

    enabled: bool = False
    days_before: int = Field(
        default=3,
        ge=0,
        description="Reminder window length in days, ending at the due date"
    )


class ValidationIssue(BaseModel):
    """A single validation problem with caller input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


# =============================================================================
# CORE LEDGER ENTRY
# =============================================================================

class BorrowingRecord(BaseModel):
    """
    One tracked debt, owed by the owner (BORROWED) or to the owner (LENT).

    Invariants enforced here:
    - 0 <= remaining <= principal
    - principal and remaining are finite

    Status is persisted, not derived on read: a manual status override may
    legitimately disagree with the remaining balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    owner: str = Field(
        ...,
        min_length=1,
        description="Identifier of the user this record belongs to"
    )

    # What kind of debt
    direction: Direction
    counterparty: Counterparty

    # Money
    principal: Decimal = Field(
        ...,
        ge=0,
        description="Original amount, fixed at creation"
    )
    remaining: Decimal = Field(
        ...,
        ge=0,
        description="Outstanding unpaid balance"
    )

    # Scheduling
    due_date: Optional[datetime] = None
    reminder: ReminderSettings = Field(default_factory=ReminderSettings)

    notes: str = Field(
        default="",
        max_length=1000,
    )

    status: BorrowingStatus = BorrowingStatus.PENDING

    # Bookkeeping, owned by the store
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    version: int = Field(
        default=1,
        ge=1,
        description="Optimistic concurrency counter"
    )

    @field_validator('due_date', mode='before')
    @classmethod
    def coerce_due_date(cls, v: Any) -> Any:
        return parse_due_date(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def coerce_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_amounts(self) -> 'BorrowingRecord':
        """Validate the balance relationship."""
        if not self.principal.is_finite() or not self.remaining.is_finite():
            raise ValueError("Amounts must be finite")

        if self.remaining > self.principal:
            raise ValueError("Remaining balance cannot exceed principal")

        return self

    @property
    def is_settled(self) -> bool:
        return self.status == BorrowingStatus.PAID

    def to_api_dict(self) -> dict:
        """
        Render in the JSON shape the web client consumes.

        Field names: type, counterparty.{name,contact}, amount, remaining,
        dueDate, notes, reminder.{enabled,daysBefore}, status.
        """
        return {
            "id": str(self.id),
            "type": self.direction.value,
            "counterparty": {
                "name": self.counterparty.name,
                "contact": self.counterparty.contact,
            },
            "amount": _amount_to_json(self.principal),
            "remaining": _amount_to_json(self.remaining),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "reminder": {
                "enabled": self.reminder.enabled,
                "daysBefore": self.reminder.days_before,
            },
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_api_dict(cls, owner: str, data: dict) -> 'BorrowingRecord':
        """Inverse of to_api_dict(). Missing remaining defaults to the amount."""
        counterparty = data.get("counterparty") or {}
        reminder = data.get("reminder") or {}
        amount = Decimal(str(data["amount"]))
        remaining = data.get("remaining")

        fields: dict[str, Any] = {
            "owner": owner,
            "direction": Direction(data["type"]),
            "counterparty": Counterparty(
                name=counterparty.get("name", ""),
                contact=counterparty.get("contact") or "",
            ),
            "principal": amount,
            "remaining": amount if remaining is None else Decimal(str(remaining)),
            "due_date": data.get("dueDate"),
            "notes": data.get("notes") or "",
            "reminder": ReminderSettings(
                enabled=bool(reminder.get("enabled", False)),
                days_before=reminder.get("daysBefore", 3),
            ),
            "status": BorrowingStatus(data.get("status", BorrowingStatus.PENDING.value)),
        }
        if data.get("id"):
            fields["id"] = UUID(str(data["id"]))
        if data.get("createdAt"):
            fields["created_at"] = parse_due_date(data["createdAt"])
        if data.get("updatedAt"):
            fields["updated_at"] = parse_due_date(data["updatedAt"])
        return cls(**fields)


# =============================================================================
# READ MODELS (derived at query time, never stored)
# =============================================================================

class RecordView(BaseModel):
    """A record plus its time-dependent state as of one moment."""

    record: BorrowingRecord
    as_of: datetime
    is_overdue: bool
    overdue_days: int = Field(ge=0)
    overdue_severity: OverdueSeverity
    reminder_due: bool

    def to_api_dict(self) -> dict:
        data = self.record.to_api_dict()
        data.update({
            "isOverdue": self.is_overdue,
            "overdueDays": self.overdue_days,
            "overdueSeverity": self.overdue_severity.value,
            "reminderDue": self.reminder_due,
        })
        return data


class RecordPage(BaseModel):
    """One page of a filtered record listing."""

    items: list[RecordView] = Field(default_factory=list)
    record_filter: RecordFilter = RecordFilter.ALL
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_items: int = Field(ge=0)
    total_pages: int = Field(ge=1)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class LedgerSummary(BaseModel):
    """
    Aggregate balances for one owner.

    Sums are over remaining balances, not principals.
    """

    as_of: datetime
    total_owed_by_owner: Decimal = Decimal("0")
    total_owed_to_owner: Decimal = Decimal("0")
    overdue_count: int = Field(default=0, ge=0)
    overdue_amount: Decimal = Decimal("0")
    total_count: int = Field(default=0, ge=0)

    @property
    def net_position(self) -> Decimal:
        """Positive when others owe the owner more than the owner owes."""
        return self.total_owed_to_owner - self.total_owed_by_owner

    def to_api_dict(self) -> dict:
        return {
            "owedByMe": _amount_to_json(self.total_owed_by_owner),
            "owedToMe": _amount_to_json(self.total_owed_to_owner),
            "total": self.total_count,
            "overdueCount": self.overdue_count,
            "overdueAmount": _amount_to_json(self.overdue_amount),
        }
