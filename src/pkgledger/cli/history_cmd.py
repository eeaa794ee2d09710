"""Ledger commands: ``history`` and ``rollback``.

``rollback`` exits with status 1 when any reversing operation failed, after
printing which ones did.
"""

from __future__ import annotations

import sys

import click

from pkgledger.cli.output import print_history, print_rollback_report
from pkgledger.cli.session import open_manager, pass_settings
from pkgledger.config import Settings
from pkgledger.core.ledger import DEFAULT_HISTORY_LIMIT


@click.command("history")
@click.option(
    "--limit", default=DEFAULT_HISTORY_LIMIT, type=int, show_default=True,
    help="Maximum number of transactions to show.",
)
@pass_settings
def history_command(settings: Settings, limit: int) -> None:
    """Show recent transactions, newest first."""
    with open_manager(settings) as manager:
        records = manager.history(limit)
    print_history(records)


@click.command("rollback")
@click.argument("transaction_id", metavar="ID", type=int)
@pass_settings
def rollback_command(settings: Settings, transaction_id: int) -> None:
    """Reverse transaction ID.

    Packages from an install are removed, dependents first. Packages from a
    remove are installed again. Upgrades cannot be rolled back.
    """
    with open_manager(settings) as manager:
        report = manager.rollback(transaction_id)
    print_rollback_report(report)
    if not report.ok:
        sys.exit(1)
