"""
Derived State

Overdue and reminder state depend on the current time, so they are never
stored. They are recomputed here, on every read, from a record and an
explicit "now".

DESIGN DECISION: No function in this module reads the clock.
The caller passes now, which keeps every result deterministic and lets the
same record be evaluated "as of" any moment.
"""

import math
from datetime import date, datetime, timedelta

from ledger.models.borrowing import (
    BorrowingRecord,
    BorrowingStatus,
    OverdueSeverity,
    RecordView,
    as_utc,
)

SECONDS_PER_DAY = 24 * 60 * 60

# Upper bound (inclusive) of each severity band, in overdue days
MILD_MAX_DAYS = 7
MODERATE_MAX_DAYS = 30


def is_overdue(record: BorrowingRecord, now: datetime) -> bool:
    """True when the due date has passed and the entry isn't marked paid."""
    if record.due_date is None or record.status == BorrowingStatus.PAID:
        return False
    return record.due_date < as_utc(now)


def overdue_days(record: BorrowingRecord, now: datetime) -> int:
    """
    Whole days past due, rounding partial days up.

    Due at 09:00 and checked at 09:01 the same day counts as 1 day overdue.
    Returns 0 for anything not overdue.
    """
    if not is_overdue(record, now):
        return 0
    elapsed = (as_utc(now) - record.due_date).total_seconds()
    return math.ceil(elapsed / SECONDS_PER_DAY)


def overdue_severity(record: BorrowingRecord, now: datetime) -> OverdueSeverity:
    days = overdue_days(record, now)
    if days <= 0:
        return OverdueSeverity.NORMAL
    if days <= MILD_MAX_DAYS:
        return OverdueSeverity.MILD
    if days <= MODERATE_MAX_DAYS:
        return OverdueSeverity.MODERATE
    return OverdueSeverity.SEVERE


def is_reminder_due(record: BorrowingRecord, now: datetime) -> bool:
    """
    True when now falls inside the reminder window.

    The window runs from days_before days ahead of the due date up to and
    including the due date itself. Both ends and now are compared by
    calendar day (UTC), so time of day never matters.
    """
    if not record.reminder.enabled:
        return False
    if record.status == BorrowingStatus.PAID or record.due_date is None:
        return False

    today = as_utc(now).date()
    window_end = record.due_date.date()
    return reminder_window_start(window_end, record.reminder.days_before) <= today <= window_end


def reminder_window_start(due_day: date, days_before: int) -> date:
    """First day of the reminder window, clamped to date.min for very wide windows."""
    if days_before >= (due_day - date.min).days:
        return date.min
    return due_day - timedelta(days=days_before)


def build_view(record: BorrowingRecord, now: datetime) -> RecordView:
    """Attach derived state to a record as of now."""
    return RecordView(
        record=record,
        as_of=as_utc(now),
        is_overdue=is_overdue(record, now),
        overdue_days=overdue_days(record, now),
        overdue_severity=overdue_severity(record, now),
        reminder_due=is_reminder_due(record, now),
    )
