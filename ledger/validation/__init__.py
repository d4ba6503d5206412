"""Input validation package."""

from ledger.errors import ValidationError
from ledger.validation.validator import LedgerValidator

__all__ = ["LedgerValidator", "ValidationError"]
