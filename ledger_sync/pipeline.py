"""
Ledger sync pipeline

Fetch -> aggregate -> reconcile -> append, sequentially in one run. The
ledger is written once, after every new transaction is known, so a failed
run leaves it untouched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .datasource.bills import BillFetcher
from .ledger.store import LedgerStore
from .reconciliation.aggregator import TransactionAggregator
from .reconciliation.models import LogicalTransaction
from .reconciliation.reconciler import LedgerReconciler
from .utils.config import SyncConfig
from .utils.structured_logging import SyncContext, SyncLogger, sync_timer

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Summary of one sync run"""
    raw_count: int
    aggregated_count: int
    watermark: Optional[datetime]
    new_transactions: List[LogicalTransaction] = field(default_factory=list)
    appended: bool = False

    @property
    def merged_count(self) -> int:
        """Bills absorbed into another bill's order group"""
        return self.raw_count - self.aggregated_count

    @property
    def new_count(self) -> int:
        return len(self.new_transactions)


class LedgerSync:
    """Runs one full reconciliation of the bills archive into a ledger"""

    def __init__(self, fetcher: BillFetcher, store: LedgerStore,
                 aggregator: Optional[TransactionAggregator] = None,
                 reconciler: Optional[LedgerReconciler] = None,
                 context: Optional[SyncContext] = None):
        self.fetcher = fetcher
        self.store = store
        self.aggregator = aggregator or TransactionAggregator()
        self.reconciler = reconciler or LedgerReconciler()
        self.sync_logger = SyncLogger(__name__, context or SyncContext.create(
            component="ledger_sync", ledger_path=str(store.path)))

    @classmethod
    def from_config(cls, config: SyncConfig, ledger_path: Optional[str] = None) -> 'LedgerSync':
        """Wire fetcher, store and reconciler from configuration"""
        context = SyncContext.create(
            component="ledger_sync",
            simulated=config.credentials.simulated,
            ledger_path=ledger_path or config.ledger_path
        )
        fetcher = BillFetcher(config.credentials, config.fetch, context=context)
        store = LedgerStore(ledger_path or config.ledger_path)
        reconciler = LedgerReconciler(inclusive_watermark=config.reconcile.inclusive_watermark)
        return cls(fetcher, store, reconciler=reconciler, context=context)

    def run(self, dry_run: bool = False) -> SyncResult:
        """
        Execute one sync

        Args:
            dry_run: Compute new transactions without touching the ledger

        Returns:
            SyncResult describing what was (or would be) appended
        """
        with sync_timer(self.sync_logger, "ledger_sync", dry_run=dry_run):
            try:
                return self._run(dry_run)
            except Exception as e:
                self.sync_logger.error_event(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    message=f"Sync failed: {e}",
                    dry_run=dry_run
                )
                raise

    def _run(self, dry_run: bool) -> SyncResult:
        # An unreadable ledger aborts the run before any API traffic
        watermark = self.store.latest_timestamp()
        if watermark:
            logger.info(f"Ledger watermark: {watermark.isoformat()}")
        else:
            logger.info("Ledger is empty, every transaction is new")

        bills = self.fetcher.fetch_all()
        transactions = self.aggregator.aggregate(bills)
        reconciled = self.reconciler.reconcile(transactions, watermark)

        result = SyncResult(
            raw_count=len(bills),
            aggregated_count=len(transactions),
            watermark=watermark,
            new_transactions=reconciled.new_transactions
        )

        if reconciled.has_new and not dry_run:
            self.store.append(reconciled.new_transactions)
            result.appended = True

        self.sync_logger.sync_event(
            status="completed",
            message=f"Sync completed: {result.new_count} new transactions"
                    + (" (dry run)" if dry_run else ""),
            raw_bills=result.raw_count,
            transactions=result.aggregated_count,
            merged=result.merged_count,
            new_transactions=result.new_count,
            appended=result.appended
        )
        return result
