"""
Persistent ledger storage
"""

from .store import (
    LedgerStore,
    LedgerError,
    LedgerIOError,
    LedgerParseError,
    COLUMNS,
    format_timestamp,
    parse_timestamp
)

__all__ = [
    'LedgerStore',
    'LedgerError',
    'LedgerIOError',
    'LedgerParseError',
    'COLUMNS',
    'format_timestamp',
    'parse_timestamp'
]
