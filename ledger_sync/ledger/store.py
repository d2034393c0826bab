"""
Append-only CSV ledger

Layout: header ``timestamp,type,amount,asset,note`` followed by one row per
logical transaction in ascending time order. Existing rows are never
rewritten; new rows are only ever appended.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from ..reconciliation.models import LogicalTransaction, TransactionKind

logger = logging.getLogger(__name__)

COLUMNS = ['timestamp', 'type', 'amount', 'asset', 'note']


class LedgerError(Exception):
    """Base ledger error"""


class LedgerIOError(LedgerError):
    """Ledger file cannot be opened, created or written"""


class LedgerParseError(LedgerError):
    """An existing ledger row cannot be parsed"""


def format_timestamp(ts: datetime) -> str:
    """UTC ISO-8601 with milliseconds, e.g. 2025-12-12T14:00:00.123Z"""
    ts = _ensure_utc(ts)
    return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f"{ts.microsecond // 1000:03d}Z"


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 / RFC3339 timestamp; naive values are taken as UTC"""
    return _ensure_utc(datetime.fromisoformat(text.strip()))


def format_amount(amount: Decimal) -> str:
    return f"{amount:.8f}"


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class LedgerStore:
    """
    CSV-backed ledger of LogicalTransaction rows

    Assumes a single writer per ledger file for the duration of a run.
    """

    def __init__(self, path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists() and self.path.stat().st_size > 0

    def read(self) -> List[LogicalTransaction]:
        """
        Read every persisted transaction in file order

        Returns:
            List of LogicalTransaction, empty when the ledger does not exist yet

        Raises:
            LedgerIOError: file exists but cannot be read
            LedgerParseError: a row has an invalid timestamp, type or amount
        """
        if not self.exists():
            return []

        try:
            frame = pd.read_csv(self.path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return []
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise LedgerParseError(f"Cannot parse ledger {self.path}: {e}") from e
        except OSError as e:
            raise LedgerIOError(f"Cannot read ledger {self.path}: {e}") from e

        missing = [col for col in COLUMNS if col not in frame.columns]
        if missing:
            raise LedgerParseError(f"Ledger {self.path} missing columns: {missing}")

        transactions = []
        # Row 1 is the header
        for row_number, row in enumerate(frame[COLUMNS].itertuples(index=False), start=2):
            transactions.append(self._parse_row(row, row_number))

        logger.debug(f"Read {len(transactions)} rows from {self.path}")
        return transactions

    def latest_timestamp(self) -> Optional[datetime]:
        """Timestamp of the last ledger row, None when the ledger is empty"""
        transactions = self.read()
        if not transactions:
            return None
        return transactions[-1].timestamp

    def append(self, transactions: Iterable[LogicalTransaction]) -> int:
        """
        Append already-sorted transactions to the ledger

        Creates the file (and parent directories) with a header row when it
        does not exist yet.

        Returns:
            Number of rows written
        """
        transactions = list(transactions)
        if not transactions:
            return 0

        for previous, current in zip(transactions, transactions[1:]):
            if current.timestamp < previous.timestamp:
                raise ValueError("Transactions must be sorted by timestamp before appending")
        for transaction in transactions:
            if not transaction.amount.is_finite():
                raise ValueError(f"Refusing to append non-finite amount {transaction.amount!r}")

        frame = pd.DataFrame([self._to_row(t) for t in transactions], columns=COLUMNS)
        need_header = not self.exists()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not need_header and not self._ends_with_newline():
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write('\n')
            frame.to_csv(self.path, mode='a', header=need_header, index=False, lineterminator='\n')
        except OSError as e:
            raise LedgerIOError(f"Cannot write ledger {self.path}: {e}") from e

        logger.info(f"Appended {len(frame)} rows to {self.path}")
        return len(frame)

    def _ends_with_newline(self) -> bool:
        with open(self.path, 'rb') as f:
            f.seek(-1, 2)
            return f.read(1) == b'\n'

    def _parse_row(self, row, row_number: int) -> LogicalTransaction:
        try:
            timestamp = parse_timestamp(row.timestamp)
        except ValueError as e:
            raise LedgerParseError(
                f"Row {row_number}: invalid timestamp {row.timestamp!r} (expected ISO-8601)") from e

        try:
            amount = Decimal(row.amount.strip())
        except InvalidOperation as e:
            raise LedgerParseError(f"Row {row_number}: invalid amount {row.amount!r}") from e
        if not amount.is_finite():
            raise LedgerParseError(f"Row {row_number}: invalid amount {row.amount!r}")

        try:
            kind = TransactionKind(row.type.strip())
        except ValueError as e:
            raise LedgerParseError(f"Row {row_number}: unknown type {row.type!r}") from e

        return LogicalTransaction(
            timestamp=timestamp,
            kind=kind,
            amount=amount,
            asset=row.asset,
            note=row.note
        )

    @staticmethod
    def _to_row(transaction: LogicalTransaction) -> dict:
        return {
            'timestamp': format_timestamp(transaction.timestamp),
            'type': transaction.kind.value,
            'amount': format_amount(transaction.amount),
            'asset': transaction.asset,
            'note': transaction.note
        }
