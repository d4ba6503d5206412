"""
Ledger Input Validation

Checks caller input before anything touches storage.

DESIGN DECISION: Validation collects every issue rather than stopping at
the first one, so a form with three mistakes gets three messages back.

IMPORTANT: Validation NEVER silently fixes issues. An amount of "abc" or
a blank counterparty name is rejected, not coerced to something plausible.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ledger.config import get_settings
from ledger.config.settings import AppSettings
from ledger.models.borrowing import BorrowingStatus, Direction, ValidationIssue

# Smallest currency unit is one hundredth
MAX_DECIMAL_PLACES = 2


def decimal_places(amount: Decimal) -> int:
    """Significant digits after the decimal point; trailing zeros don't count."""
    _, digits, exponent = amount.as_tuple()
    if not any(digits):
        return 0
    while exponent < 0 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(0, -exponent)


class LedgerValidator:
    """Validates input to ledger engine operations."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @staticmethod
    def to_decimal(value: Any) -> Optional[Decimal]:
        """
        Convert a user-supplied amount to Decimal.

        Floats go through str() so 0.1 becomes Decimal("0.1"), not its
        binary approximation. Returns None for anything unparseable,
        including booleans.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None

    def _check_amount(
        self,
        value: Any,
        field: str,
        allow_zero: bool,
        enforce_maximum: bool = False,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        amount = self.to_decimal(value)

        if amount is None:
            return None, [ValidationIssue(
                field=field,
                issue_type="missing" if value is None else "invalid_format",
                message=f"{field.capitalize()} must be a number",
            )]
        if not amount.is_finite():
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field.capitalize()} must be a finite number",
            )]
        if amount < 0 or (amount == 0 and not allow_zero):
            bound = "zero or more" if allow_zero else "greater than zero"
            return None, [ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"{field.capitalize()} must be {bound}",
            )]
        if enforce_maximum and amount > Decimal(str(self._settings.max_principal_amount)):
            return None, [ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"{field.capitalize()} exceeds the maximum of {self._settings.max_principal_amount:,.0f}",
            )]
        if decimal_places(amount) > MAX_DECIMAL_PLACES:
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_precision",
                message=f"{field.capitalize()} can have at most {MAX_DECIMAL_PLACES} decimal places",
            )]
        return amount, []

    def validate_new_entry(
        self,
        direction: Any,
        counterparty_name: Any,
        principal: Any,
        reminder_days_before: Any = None,
    ) -> list[ValidationIssue]:
        """
        Check the fields needed to open a ledger entry.

        Principal may be zero (a placeholder entry); it may not be negative.
        """
        issues = []

        if isinstance(direction, Direction):
            pass
        elif not isinstance(direction, str) or direction not in {d.value for d in Direction}:
            issues.append(ValidationIssue(
                field="direction",
                issue_type="invalid_value",
                message="Direction must be 'borrowed' or 'lent'",
            ))

        if not isinstance(counterparty_name, str) or not counterparty_name.strip():
            issues.append(ValidationIssue(
                field="counterparty_name",
                issue_type="missing",
                message="Counterparty name is required",
            ))

        _, amount_issues = self._check_amount(
            principal, "principal", allow_zero=True, enforce_maximum=True
        )
        issues.extend(amount_issues)

        if reminder_days_before is not None:
            if (
                isinstance(reminder_days_before, bool)
                or not isinstance(reminder_days_before, int)
                or reminder_days_before < 0
            ):
                issues.append(ValidationIssue(
                    field="reminder_days_before",
                    issue_type="out_of_range",
                    message="Reminder days must be a whole number, zero or more",
                ))

        return issues

    def validate_payment(self, payment_amount: Any) -> list[ValidationIssue]:
        """A payment must be a positive, finite amount."""
        _, issues = self._check_amount(payment_amount, "payment", allow_zero=False)
        return issues

    def validate_status(self, status: Any) -> list[ValidationIssue]:
        if isinstance(status, BorrowingStatus):
            return []
        if isinstance(status, str) and status in {s.value for s in BorrowingStatus}:
            return []
        return [ValidationIssue(
            field="status",
            issue_type="invalid_value",
            message="Status must be one of: pending, partial, paid",
        )]
