"""
Ledger Reconciliation Engine

Decides which aggregated transactions are new relative to the persisted
ledger. The ledger tail timestamp is the watermark: anything at or before
it is treated as already recorded.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from .models import LogicalTransaction

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of reconciling one batch against the ledger"""
    watermark: Optional[datetime]
    candidates: int
    dropped_zero: int
    dropped_stale: int
    new_transactions: List[LogicalTransaction] = field(default_factory=list)

    @property
    def has_new(self) -> bool:
        return bool(self.new_transactions)


class LedgerReconciler:
    """
    Filters and orders transactions for appending

    Filters, in order:
    1. amount exactly zero
    2. timestamp not strictly after the watermark

    With inclusive_watermark=True the second filter keeps transactions whose
    timestamp equals the watermark. That avoids dropping a genuinely new
    entry sharing the last recorded millisecond, at the cost of re-appending
    the last recorded entry on every run.
    """

    def __init__(self, inclusive_watermark: bool = False):
        self.inclusive_watermark = inclusive_watermark

    def is_new(self, transaction: LogicalTransaction, watermark: Optional[datetime]) -> bool:
        if watermark is None:
            return True
        if self.inclusive_watermark:
            return transaction.timestamp >= watermark
        return transaction.timestamp > watermark

    def reconcile(self, transactions: Iterable[LogicalTransaction],
                  watermark: Optional[datetime]) -> ReconcileResult:
        """
        Select transactions newer than the watermark, sorted by time

        Args:
            transactions: Aggregated transactions, any order
            watermark: Timestamp of the last ledger entry, None for an empty ledger

        Returns:
            ReconcileResult whose new_transactions are ready to append
        """
        candidates = list(transactions)
        non_zero = [t for t in candidates if not t.is_zero]
        fresh = [t for t in non_zero if self.is_new(t, watermark)]

        # sorted() is stable, equal timestamps keep aggregation order
        fresh = sorted(fresh, key=lambda t: t.timestamp)

        result = ReconcileResult(
            watermark=watermark,
            candidates=len(candidates),
            dropped_zero=len(candidates) - len(non_zero),
            dropped_stale=len(non_zero) - len(fresh),
            new_transactions=fresh
        )

        logger.info(f"Reconciled {result.candidates} transactions against watermark "
                    f"{watermark.isoformat() if watermark else 'none'}: {len(fresh)} new, "
                    f"{result.dropped_zero} zero, {result.dropped_stale} already recorded")
        return result

    def reconcile_with_store(self, transactions: Iterable[LogicalTransaction], store) -> ReconcileResult:
        """Reconcile against the watermark of a LedgerStore"""
        return self.reconcile(transactions, store.latest_timestamp())

    def select_new(self, transactions: Iterable[LogicalTransaction],
                   watermark: Optional[datetime]) -> List[LogicalTransaction]:
        return self.reconcile(transactions, watermark).new_transactions


# Convenience functions
def select_new_transactions(transactions: Iterable[LogicalTransaction],
                            watermark: Optional[datetime],
                            inclusive_watermark: bool = False) -> List[LogicalTransaction]:
    """Convenience function for ledger reconciliation"""
    return LedgerReconciler(inclusive_watermark).select_new(transactions, watermark)
