"""
Borrowing Ledger - Source Package

Tracks money a user has borrowed from, or lent to, other people:
partial payments, due dates, overdue detection and reminder windows.

DESIGN PRINCIPLES:
1. Every call names its owner explicitly - no ambient session state
2. Time-dependent state is derived from an explicit "now", never stored
3. Remaining balance only moves down, and never below zero
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Borrowing Ledger Team"
