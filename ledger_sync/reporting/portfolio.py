"""
Portfolio status computed from the reconciled ledger
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List

import pandas as pd

from ..reconciliation.models import LogicalTransaction, TransactionKind

logger = logging.getLogger(__name__)

DEFAULT_TARGET = 120000.0


@dataclass
class PortfolioStatus:
    """Account health derived from ledger history"""
    initial_capital: Decimal = Decimal("0")
    current_balance: Decimal = Decimal("0")
    total_pnl: Decimal = Decimal("0")
    total_harvested: Decimal = Decimal("0")
    win_count: int = 0
    loss_count: int = 0
    target: float = DEFAULT_TARGET

    @property
    def progress(self) -> float:
        """Current balance as a percentage of the target"""
        if self.target == 0:
            return 0.0
        return float(self.current_balance) / self.target * 100

    @property
    def win_rate(self) -> float:
        """Winning PNL entries as a percentage of non-zero PNL entries"""
        total_trades = self.win_count + self.loss_count
        if total_trades == 0:
            return 0.0
        return self.win_count / total_trades * 100


def analyze_portfolio(transactions: Iterable[LogicalTransaction],
                      target: float = DEFAULT_TARGET) -> PortfolioStatus:
    """
    Summarize ledger history

    Every signed amount moves the balance. Deposits count as capital,
    withdrawals as harvested (absolute value), PNL entries feed total PnL
    and the win/loss counters.
    """
    status = PortfolioStatus(target=target)

    for tx in transactions:
        status.current_balance += tx.amount

        if tx.kind == TransactionKind.DEPOSIT:
            status.initial_capital += tx.amount
        elif tx.kind == TransactionKind.WITHDRAWAL:
            status.total_harvested += abs(tx.amount)
        elif tx.kind == TransactionKind.PNL:
            status.total_pnl += tx.amount
            if tx.amount > 0:
                status.win_count += 1
            elif tx.amount < 0:
                status.loss_count += 1

    return status


def to_frame(transactions: List[LogicalTransaction]) -> pd.DataFrame:
    """Ledger as a DataFrame with a running balance column"""
    frame = pd.DataFrame(
        [{
            'timestamp': tx.timestamp,
            'type': tx.kind.value,
            'amount': float(tx.amount),
            'asset': tx.asset,
            'note': tx.note
        } for tx in transactions],
        columns=['timestamp', 'type', 'amount', 'asset', 'note']
    )
    frame['balance'] = frame['amount'].cumsum()
    return frame


def monthly_pnl(transactions: List[LogicalTransaction]) -> pd.Series:
    """Net PNL per calendar month (UTC)"""
    frame = to_frame(transactions)
    pnl = frame[frame['type'] == TransactionKind.PNL.value]
    if pnl.empty:
        return pd.Series(dtype=float)
    months = pd.to_datetime(pnl['timestamp'], utc=True).dt.strftime('%Y-%m')
    return pnl.groupby(months)['amount'].sum()
