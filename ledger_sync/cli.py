"""
Command line interface for ledger-sync

Examples:
    ledger-sync sync --config config.json --out data/ledger.csv
    ledger-sync sync --config config/ledger_sync.yml --dry-run
    ledger-sync status --ledger data/ledger.csv --target 120000
    ledger-sync status --config config/ledger_sync.yml --monthly
"""

import logging
import sys
from typing import Optional

import click

from .datasource.base import BillsAPIError
from .ledger.store import LedgerError, LedgerStore
from .pipeline import LedgerSync
from .reporting.portfolio import analyze_portfolio, monthly_pnl
from .utils.config import ConfigError, ConfigManager, PortfolioSettings
from .utils.structured_logging import configure_structured_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name='ledger-sync')
def cli():
    """Reconcile OKX account bills into a local CSV ledger"""


@cli.command('sync')
@click.option('--config', 'config_path', default='config.json',
              help='Path to YAML or JSON config file (default: config.json)')
@click.option('--out', 'ledger_path', default=None,
              help='Path to ledger csv (default: ledger.path from config, else data/ledger.csv)')
@click.option('--dry-run', is_flag=True, default=False,
              help='Show new transactions without writing the ledger')
@click.option('--json-logs', is_flag=True, default=False,
              help='Emit structured JSON logs')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Verbose output')
def sync_command(config_path: str, ledger_path: Optional[str], dry_run: bool,
                 json_logs: bool, verbose: bool):
    """Fetch the bills archive and append new transactions to the ledger"""
    configure_structured_logging(
        log_level="DEBUG" if verbose else "INFO",
        json_format=json_logs
    )

    try:
        config = ConfigManager().get_sync_config(config_path)
        syncer = LedgerSync.from_config(config, ledger_path)

        click.echo(f"📡 Syncing OKX bills archive into {syncer.store.path}")
        result = syncer.run(dry_run=dry_run)
    except (ConfigError, BillsAPIError, LedgerError) as e:
        click.echo(f"❌ Sync failed: {e}", err=True)
        sys.exit(1)

    if result.watermark:
        click.echo(f"📅 Latest ledger entry: {result.watermark:%Y-%m-%d %H:%M:%S}")
    click.echo(f"✅ Raw bills fetched: {result.raw_count}")
    click.echo(f"🔄 Aggregated transactions: {result.aggregated_count} "
               f"(merged {result.merged_count} fragments)")

    if not result.new_transactions:
        click.echo("✨ Ledger is up to date")
    elif dry_run:
        click.echo(f"📝 {result.new_count} new transactions (dry run, ledger not written):")
        for tx in result.new_transactions:
            click.echo(f"   • {tx.timestamp:%Y-%m-%d %H:%M:%S} {tx.kind.value:<10} "
                       f"{tx.amount:>14.8f} {tx.asset} {tx.note}")
    else:
        click.echo(f"📥 Imported {result.new_count} new transactions")


@cli.command('status')
@click.option('--config', 'config_path', default=None,
              help='Optional YAML or JSON config supplying ledger.path and portfolio.target')
@click.option('--ledger', 'ledger_path', default=None,
              help='Path to ledger csv (default: ledger.path from config, else data/ledger.csv)')
@click.option('--target', default=None, type=float,
              help='Target balance for progress (default: portfolio.target from config, else 120000)')
@click.option('--monthly', is_flag=True, default=False,
              help='Also show net PNL per month')
def status_command(config_path: Optional[str], ledger_path: Optional[str],
                   target: Optional[float], monthly: bool):
    """Summarize the ledger: balance, PnL, withdrawals and win rate"""
    try:
        settings = (ConfigManager().get_portfolio_settings(config_path)
                    if config_path else PortfolioSettings())
    except ConfigError as e:
        click.echo(f"❌ Invalid config: {e}", err=True)
        sys.exit(1)

    ledger_path = ledger_path or settings.ledger_path
    if target is None:
        target = settings.target

    try:
        transactions = LedgerStore(ledger_path).read()
    except LedgerError as e:
        click.echo(f"❌ Cannot read ledger: {e}", err=True)
        sys.exit(1)

    if not transactions:
        click.echo(f"Ledger {ledger_path} is empty")
        return

    status = analyze_portfolio(transactions, target)

    click.echo(f"Entries:          {len(transactions)}")
    click.echo(f"Initial capital:  {status.initial_capital:,.2f}")
    click.echo(f"Current balance:  {status.current_balance:,.2f}")
    click.echo(f"Total PnL:        {status.total_pnl:,.2f}")
    click.echo(f"Total harvested:  {status.total_harvested:,.2f}")
    click.echo(f"Win rate:         {status.win_rate:.1f}% ({status.win_count}W / {status.loss_count}L)")
    click.echo(f"Progress:         {status.progress:.2f}% of {status.target:,.0f}")

    if monthly:
        click.echo("")
        for month, pnl in monthly_pnl(transactions).items():
            click.echo(f"{month}  {pnl:>14,.2f}")


def main():
    cli()


if __name__ == "__main__":
    main()
