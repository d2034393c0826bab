"""
Bill Aggregation

Collapses raw exchange bills into logical ledger transactions.

The exchange writes one bill per leg of an order (fee, realized PnL,
settlement, ...). Any bill carrying an order id is folded into a single PNL
transaction for that order, whatever its own type says. Bills without an
order id (deposits, withdrawals, funding fees, transfers) stand alone and
are classified by their type code.
"""

import logging
from typing import Dict, Iterable, List

from ..datasource.bills import RawBillEvent
from .models import LogicalTransaction, OrderGroup, TransactionKind

logger = logging.getLogger(__name__)

DEPOSIT_TYPE = "1"
WITHDRAWAL_TYPE = "2"
FUNDING_FEE_TYPE = "8"

_TYPE_LABELS = {
    DEPOSIT_TYPE: "Deposit",
    WITHDRAWAL_TYPE: "Withdrawal",
    FUNDING_FEE_TYPE: "Funding Fee",
}
_DEFAULT_LABEL = "Auto Import"


def classify_bill_type(bill_type: str) -> TransactionKind:
    """Map an OKX bill type code to a transaction kind"""
    if bill_type == DEPOSIT_TYPE:
        return TransactionKind.DEPOSIT
    if bill_type == WITHDRAWAL_TYPE:
        return TransactionKind.WITHDRAWAL
    return TransactionKind.PNL


def bill_type_label(bill_type: str) -> str:
    """Human-readable label for a bill type code"""
    return _TYPE_LABELS.get(bill_type, _DEFAULT_LABEL)


class TransactionAggregator:
    """Folds order fragments and classifies standalone bills"""

    def aggregate(self, bills: Iterable[RawBillEvent]) -> List[LogicalTransaction]:
        """
        Convert raw bills to logical transactions

        Input order does not matter for the folded values. Output lists order
        groups in first-seen order followed by standalone bills in input order.

        Args:
            bills: Raw bills for one sync window

        Returns:
            List of LogicalTransaction, unsorted by time
        """
        groups: Dict[str, OrderGroup] = {}
        standalone: List[LogicalTransaction] = []
        total = 0

        for bill in bills:
            total += 1
            if bill.has_order:
                group = groups.get(bill.order_id)
                if group is None:
                    groups[bill.order_id] = self._start_group(bill)
                else:
                    group.absorb(bill.balance_change, bill.timestamp, bill.instrument_id)
            else:
                standalone.append(self._standalone(bill))

        transactions = [group.to_transaction() for group in groups.values()]
        transactions.extend(standalone)

        logger.info(f"Aggregated {total} bills into {len(transactions)} transactions "
                    f"({len(groups)} orders, {len(standalone)} standalone)")
        return transactions

    @staticmethod
    def _start_group(bill: RawBillEvent) -> OrderGroup:
        return OrderGroup(
            order_id=bill.order_id,
            amount=bill.balance_change,
            timestamp=bill.timestamp,
            asset=bill.currency,
            note=f"Trade ({bill.instrument_id})"
        )

    @staticmethod
    def _standalone(bill: RawBillEvent) -> LogicalTransaction:
        note = bill_type_label(bill.type)
        if bill.instrument_id:
            note = f"{note} ({bill.instrument_id})"

        return LogicalTransaction(
            timestamp=bill.timestamp,
            kind=classify_bill_type(bill.type),
            amount=bill.balance_change,
            asset=bill.currency,
            note=note
        )


# Convenience functions
def aggregate_bills(bills: Iterable[RawBillEvent]) -> List[LogicalTransaction]:
    """Convenience function for bill aggregation"""
    return TransactionAggregator().aggregate(bills)
