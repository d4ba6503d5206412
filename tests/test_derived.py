"""
Tests for derived state, aggregation, filtering and pagination.

Every function here takes an explicit "now", so no test depends on
the wall clock.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from ledger.models.borrowing import (
    BorrowingRecord,
    BorrowingStatus,
    Counterparty,
    Direction,
    OverdueSeverity,
    RecordFilter,
    ReminderSettings,
)
from ledger.queries import (
    build_view,
    filter_records,
    is_overdue,
    is_reminder_due,
    overdue_days,
    overdue_severity,
    paginate,
    summarize,
)
from ledger.queries.derived import reminder_window_start


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_record(**overrides) -> BorrowingRecord:
    fields = dict(
        owner="user-alice",
        direction=Direction.BORROWED,
        counterparty=Counterparty(name="Ravi"),
        principal=Decimal("1000"),
        remaining=Decimal("1000"),
    )
    fields.update(overrides)
    return BorrowingRecord(**fields)


class TestOverdue:
    """Tests for is_overdue / overdue_days / overdue_severity."""

    def test_no_due_date_is_never_overdue(self):
        record = make_record()
        assert is_overdue(record, NOW) is False
        assert overdue_days(record, NOW) == 0
        assert overdue_severity(record, NOW) == OverdueSeverity.NORMAL

    def test_future_due_date_not_overdue(self):
        record = make_record(due_date=NOW + timedelta(days=1))
        assert is_overdue(record, NOW) is False

    def test_due_exactly_now_not_overdue(self):
        """Overdue requires the due date to be strictly in the past."""
        record = make_record(due_date=NOW)
        assert is_overdue(record, NOW) is False
        assert overdue_days(record, NOW) == 0

    def test_ten_days_past_partial_is_moderate(self):
        """A partially paid entry ten days late."""
        record = make_record(
            remaining=Decimal("600"),
            status=BorrowingStatus.PARTIAL,
            due_date=NOW - timedelta(days=10),
        )
        assert is_overdue(record, NOW) is True
        assert overdue_days(record, NOW) == 10
        assert overdue_severity(record, NOW) == OverdueSeverity.MODERATE

    def test_paid_is_never_overdue(self):
        record = make_record(
            status=BorrowingStatus.PAID,
            due_date=NOW - timedelta(days=90),
        )
        assert is_overdue(record, NOW) is False
        assert overdue_days(record, NOW) == 0
        assert overdue_severity(record, NOW) == OverdueSeverity.NORMAL

    def test_paid_override_with_balance_is_not_overdue(self):
        """Status alone decides; a PAID entry with a balance left is not overdue."""
        record = make_record(
            remaining=Decimal("600"),
            status=BorrowingStatus.PAID,
            due_date=NOW - timedelta(days=5),
        )
        assert is_overdue(record, NOW) is False

    def test_partial_days_round_up(self):
        """One minute late is one day overdue."""
        record = make_record(due_date=NOW - timedelta(minutes=1))
        assert overdue_days(record, NOW) == 1

        record = make_record(due_date=NOW - timedelta(days=2, hours=1))
        assert overdue_days(record, NOW) == 3

    @pytest.mark.parametrize("days, expected", [
        (1, OverdueSeverity.MILD),
        (7, OverdueSeverity.MILD),
        (8, OverdueSeverity.MODERATE),
        (30, OverdueSeverity.MODERATE),
        (31, OverdueSeverity.SEVERE),
        (365, OverdueSeverity.SEVERE),
    ])
    def test_severity_bands(self, days, expected):
        record = make_record(due_date=NOW - timedelta(days=days))
        assert overdue_days(record, NOW) == days
        assert overdue_severity(record, NOW) == expected

    def test_naive_now_is_treated_as_utc(self):
        record = make_record(due_date=NOW - timedelta(days=3))
        assert overdue_days(record, NOW.replace(tzinfo=None)) == 3


class TestReminderDue:
    """Tests for the reminder window."""

    def reminder_record(self, due_date, days_before=3, **overrides):
        return make_record(
            due_date=due_date,
            reminder=ReminderSettings(enabled=True, days_before=days_before),
            **overrides,
        )

    def test_two_days_before_due_with_three_day_window(self):
        record = self.reminder_record(NOW + timedelta(days=2))
        assert is_reminder_due(record, NOW) is True

    def test_disabled_reminder_never_due(self):
        record = make_record(
            due_date=NOW + timedelta(days=1),
            reminder=ReminderSettings(enabled=False, days_before=3),
        )
        assert is_reminder_due(record, NOW) is False

    def test_no_due_date_never_due(self):
        record = self.reminder_record(None)
        assert is_reminder_due(record, NOW) is False

    def test_paid_never_due(self):
        record = self.reminder_record(NOW + timedelta(days=1), status=BorrowingStatus.PAID)
        assert is_reminder_due(record, NOW) is False

    def test_window_start_is_inclusive_by_calendar_day(self):
        """The first day of the window counts regardless of time of day."""
        due = datetime(2024, 6, 18, 9, 0, tzinfo=timezone.utc)
        record = self.reminder_record(due)
        # Window opens on 2024-06-15
        assert is_reminder_due(record, datetime(2024, 6, 15, 0, 0, tzinfo=timezone.utc)) is True
        assert is_reminder_due(record, datetime(2024, 6, 14, 23, 59, tzinfo=timezone.utc)) is False

    def test_due_day_is_inclusive_even_after_due_time(self):
        due = datetime(2024, 6, 18, 9, 0, tzinfo=timezone.utc)
        record = self.reminder_record(due)
        assert is_reminder_due(record, datetime(2024, 6, 18, 23, 0, tzinfo=timezone.utc)) is True
        assert is_reminder_due(record, datetime(2024, 6, 19, 0, 0, tzinfo=timezone.utc)) is False

    def test_zero_day_window_is_due_day_only(self):
        due = datetime(2024, 6, 18, tzinfo=timezone.utc)
        record = self.reminder_record(due, days_before=0)
        assert is_reminder_due(record, datetime(2024, 6, 18, 12, tzinfo=timezone.utc)) is True
        assert is_reminder_due(record, datetime(2024, 6, 17, 12, tzinfo=timezone.utc)) is False

    def test_huge_window_opens_at_start_of_calendar(self):
        record = self.reminder_record(NOW + timedelta(days=5), days_before=1_000_000)
        assert is_reminder_due(record, NOW) is True
        assert is_reminder_due(record, NOW + timedelta(days=6)) is False

    def test_window_before_year_one_is_clamped(self):
        due = datetime(1, 1, 2, tzinfo=timezone.utc)
        record = self.reminder_record(due)
        assert is_reminder_due(record, datetime(1, 1, 1, tzinfo=timezone.utc)) is True
        assert is_reminder_due(record, NOW) is False

        view = build_view(record, NOW)
        assert view.reminder_due is False
        assert view.is_overdue is True

    @pytest.mark.parametrize("due_day, days_before, expected", [
        (date(2024, 6, 18), 3, date(2024, 6, 15)),
        (date(2024, 6, 18), 0, date(2024, 6, 18)),
        (date(1, 1, 2), 1, date(1, 1, 1)),
        (date(1, 1, 2), 2, date.min),
        (date(9999, 12, 31), 10**9, date.min),
    ])
    def test_reminder_window_start(self, due_day, days_before, expected):
        assert reminder_window_start(due_day, days_before) == expected


class TestBuildView:
    """Tests for attaching derived state to a record."""

    def test_view_matches_individual_functions(self):
        record = make_record(
            due_date=NOW - timedelta(days=40),
            reminder=ReminderSettings(enabled=True),
        )
        view = build_view(record, NOW)
        assert view.record == record
        assert view.as_of == NOW
        assert view.is_overdue is True
        assert view.overdue_days == 40
        assert view.overdue_severity == OverdueSeverity.SEVERE
        assert view.reminder_due is False

    def test_view_does_not_change_record(self):
        record = make_record(due_date=NOW - timedelta(days=2))
        build_view(record, NOW)
        assert record.status == BorrowingStatus.PENDING
        assert record.remaining == Decimal("1000")


class TestSummarize:
    """Tests for aggregate balances."""

    def test_empty_ledger(self):
        summary = summarize([], NOW)
        assert summary.total_owed_by_owner == Decimal("0")
        assert summary.total_owed_to_owner == Decimal("0")
        assert summary.overdue_count == 0
        assert summary.total_count == 0

    def test_sums_remaining_not_principal(self):
        records = [
            make_record(direction=Direction.BORROWED, remaining=Decimal("600"),
                        status=BorrowingStatus.PARTIAL),
            make_record(direction=Direction.BORROWED, principal=Decimal("250.50"),
                        remaining=Decimal("250.50")),
            make_record(direction=Direction.LENT, principal=Decimal("300"),
                        remaining=Decimal("300")),
        ]
        summary = summarize(records, NOW)
        assert summary.total_owed_by_owner == Decimal("850.50")
        assert summary.total_owed_to_owner == Decimal("300")
        assert summary.net_position == Decimal("-550.50")
        assert summary.total_count == 3

    def test_overdue_totals_cover_both_directions(self):
        records = [
            make_record(direction=Direction.BORROWED, due_date=NOW - timedelta(days=1)),
            make_record(direction=Direction.LENT, principal=Decimal("200"),
                        remaining=Decimal("200"), due_date=NOW - timedelta(days=20)),
            make_record(direction=Direction.LENT, due_date=NOW + timedelta(days=5)),
            make_record(direction=Direction.BORROWED, status=BorrowingStatus.PAID,
                        remaining=Decimal("0"), due_date=NOW - timedelta(days=3)),
        ]
        summary = summarize(records, NOW)
        assert summary.overdue_count == 2
        assert summary.overdue_amount == Decimal("1200")

    def test_decimal_sums_are_exact(self):
        records = [
            make_record(principal=Decimal("0.1"), remaining=Decimal("0.1"))
            for _ in range(3)
        ]
        assert summarize(records, NOW).total_owed_by_owner == Decimal("0.3")


class TestFilterAndPaginate:
    """Tests for dashboard filters and paging."""

    @pytest.fixture
    def records(self):
        return [
            make_record(direction=Direction.BORROWED),
            make_record(direction=Direction.LENT),
            make_record(direction=Direction.LENT, due_date=NOW - timedelta(days=2)),
            make_record(direction=Direction.BORROWED, due_date=NOW - timedelta(days=9)),
        ]

    def test_all_keeps_everything_in_order(self, records):
        assert filter_records(records, RecordFilter.ALL, NOW) == records

    def test_owed_by_me(self, records):
        result = filter_records(records, RecordFilter.OWED_BY_ME, NOW)
        assert [r.id for r in result] == [records[0].id, records[3].id]

    def test_owed_to_me(self, records):
        result = filter_records(records, RecordFilter.OWED_TO_ME, NOW)
        assert [r.id for r in result] == [records[1].id, records[2].id]

    def test_overdue(self, records):
        result = filter_records(records, RecordFilter.OVERDUE, NOW)
        assert [r.id for r in result] == [records[2].id, records[3].id]

    def test_paginate_slices_pages(self):
        records = [make_record() for _ in range(14)]
        page = paginate(records, NOW, page=3, page_size=6)
        assert page.total_items == 14
        assert page.total_pages == 3
        assert [v.record.id for v in page.items] == [r.id for r in records[12:]]
        assert page.has_next is False
        assert page.has_previous is True

    def test_paginate_empty_list_has_one_page(self):
        page = paginate([], NOW, page=1, page_size=6)
        assert page.total_pages == 1
        assert page.items == []
        assert page.has_next is False

    def test_paginate_clamps_page_number(self):
        records = [make_record() for _ in range(7)]
        assert paginate(records, NOW, page=99, page_size=6).page == 2
        assert paginate(records, NOW, page=0, page_size=6).page == 1

    def test_paginate_attaches_derived_state(self):
        records = [make_record(due_date=NOW - timedelta(days=2))]
        page = paginate(records, NOW, page=1, page_size=6, record_filter=RecordFilter.OVERDUE)
        assert page.record_filter == RecordFilter.OVERDUE
        assert page.items[0].is_overdue is True
        assert page.items[0].overdue_severity == OverdueSeverity.MILD

    def test_paginate_rejects_bad_page_size(self):
        with pytest.raises(ValueError):
            paginate([], NOW, page=1, page_size=0)
