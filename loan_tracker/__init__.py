"""
Loan Tracker

Borrower ledger with loan terms, payments, penalties and computed balances,
persisted to MongoDB with automatic fallback to a local JSON file.
"""

__version__ = "1.0.0"
