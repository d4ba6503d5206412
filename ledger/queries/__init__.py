"""Derived-state and aggregation package."""

from ledger.queries.derived import (
    build_view,
    is_overdue,
    is_reminder_due,
    overdue_days,
    overdue_severity,
)
from ledger.queries.summary import filter_records, paginate, summarize

__all__ = [
    "build_view",
    "filter_records",
    "is_overdue",
    "is_reminder_due",
    "overdue_days",
    "overdue_severity",
    "paginate",
    "summarize",
]
