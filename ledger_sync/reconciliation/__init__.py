"""
Reconciliation Module

Turns raw exchange bills into logical ledger transactions and decides
which of them are new relative to the persisted ledger.
"""

from .models import LEDGER_PRECISION, LogicalTransaction, OrderGroup, TransactionKind
from .aggregator import TransactionAggregator, aggregate_bills, classify_bill_type, bill_type_label
from .reconciler import LedgerReconciler, ReconcileResult, select_new_transactions

__all__ = [
    'LEDGER_PRECISION',
    'LogicalTransaction',
    'OrderGroup',
    'TransactionKind',
    'TransactionAggregator',
    'aggregate_bills',
    'classify_bill_type',
    'bill_type_label',
    'LedgerReconciler',
    'ReconcileResult',
    'select_new_transactions'
]
