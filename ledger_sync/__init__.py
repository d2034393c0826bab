"""
Ledger Sync - OKX bills to CSV ledger reconciliation

Fetches the exchange bills archive, folds per-order bill fragments into
logical transactions and appends the new ones to an append-only ledger.
"""

__version__ = "0.1.0"
__author__ = "Ledger Sync Team"
