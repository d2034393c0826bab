"""
Ledger data models
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

# Amounts are stored with 8 decimal places
LEDGER_PRECISION = Decimal("1E-8")


class TransactionKind(Enum):
    """Ledger transaction kinds; values are the labels written to the ledger"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    PNL = "PNL"


@dataclass(frozen=True)
class LogicalTransaction:
    """
    One reconciled ledger entry

    The amount sign is authoritative: deposits and gains are positive,
    withdrawals and losses negative.
    """
    timestamp: datetime
    kind: TransactionKind
    amount: Decimal
    asset: str
    note: str = ""

    @property
    def is_zero(self) -> bool:
        """True when the amount rounds to zero at ledger precision"""
        if not self.amount.is_finite():
            return False
        return self.amount.quantize(LEDGER_PRECISION) == 0


@dataclass
class OrderGroup:
    """Running aggregate of all bill fragments sharing one order id"""
    order_id: str
    amount: Decimal
    timestamp: datetime
    asset: str
    note: str

    def absorb(self, amount: Decimal, timestamp: datetime, instrument_id: str) -> None:
        """Fold one more fragment into the group"""
        self.amount += amount
        if timestamp > self.timestamp:
            self.timestamp = timestamp
        if instrument_id not in self.note:
            self.note += " " + instrument_id

    def to_transaction(self) -> LogicalTransaction:
        return LogicalTransaction(
            timestamp=self.timestamp,
            kind=TransactionKind.PNL,
            amount=self.amount,
            asset=self.asset,
            note=self.note
        )
