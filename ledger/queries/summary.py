"""
Aggregation, Filtering and Pagination

Pure functions over an owner's record list. They never touch storage;
the engine fetches the list once and hands it over.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ledger.models.borrowing import (
    BorrowingRecord,
    Direction,
    LedgerSummary,
    RecordFilter,
    RecordPage,
    as_utc,
)
from ledger.queries.derived import build_view, is_overdue


def summarize(records: Iterable[BorrowingRecord], now: datetime) -> LedgerSummary:
    """
    Aggregate remaining balances.

    owed_by_owner sums BORROWED entries, owed_to_owner sums LENT entries.
    Overdue totals cover both directions.
    """
    owed_by_owner = Decimal("0")
    owed_to_owner = Decimal("0")
    overdue_amount = Decimal("0")
    overdue_count = 0
    total_count = 0

    for record in records:
        total_count += 1
        if record.direction == Direction.BORROWED:
            owed_by_owner += record.remaining
        else:
            owed_to_owner += record.remaining

        if is_overdue(record, now):
            overdue_count += 1
            overdue_amount += record.remaining

    return LedgerSummary(
        as_of=as_utc(now),
        total_owed_by_owner=owed_by_owner,
        total_owed_to_owner=owed_to_owner,
        overdue_count=overdue_count,
        overdue_amount=overdue_amount,
        total_count=total_count,
    )


def filter_records(
    records: Iterable[BorrowingRecord],
    record_filter: RecordFilter,
    now: datetime,
) -> list[BorrowingRecord]:
    """Apply one of the dashboard filter tabs, preserving order."""
    if record_filter == RecordFilter.OWED_BY_ME:
        return [r for r in records if r.direction == Direction.BORROWED]
    if record_filter == RecordFilter.OWED_TO_ME:
        return [r for r in records if r.direction == Direction.LENT]
    if record_filter == RecordFilter.OVERDUE:
        return [r for r in records if is_overdue(r, now)]
    return list(records)


def paginate(
    records: list[BorrowingRecord],
    now: datetime,
    page: int,
    page_size: int,
    record_filter: RecordFilter = RecordFilter.ALL,
) -> RecordPage:
    """
    Slice one page out of an already-filtered list.

    There is always at least one page, even for an empty list, and an
    out-of-range page number is clamped to the nearest valid page.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")

    total_items = len(records)
    total_pages = max(1, math.ceil(total_items / page_size))
    page = min(max(1, page), total_pages)

    start = (page - 1) * page_size
    items = [build_view(r, now) for r in records[start:start + page_size]]

    return RecordPage(
        items=items,
        record_filter=record_filter,
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )
