"""Package commands: ``install``, ``remove``, ``upgrade``, ``search``, ``list``.

Exit Codes:
    0: Operation completed (including an upgrade that found nothing newer).
    1: Package not found, conflict, blocked removal or failed transaction.
"""

from __future__ import annotations

import click

from pkgledger.cli.output import (
    console,
    print_install_report,
    print_installed,
    print_search_results,
    print_upgrade_result,
)
from pkgledger.cli.session import open_manager, pass_settings
from pkgledger.config import Settings


@click.command("install")
@click.argument("name")
@pass_settings
def install_command(settings: Settings, name: str) -> None:
    """Install NAME together with its missing dependencies.

    Examples:

        pkgledger install nginx

        pkgledger i nginx
    """
    with open_manager(settings) as manager:
        report = manager.install(name)
    print_install_report(report)


@click.command("remove")
@click.argument("name")
@pass_settings
def remove_command(settings: Settings, name: str) -> None:
    """Remove NAME, unless another installed package depends on it."""
    with open_manager(settings) as manager:
        transaction_id = manager.remove(name)
    console.print(f"[green]Removed[/green] {name} (transaction {transaction_id})")


@click.command("upgrade")
@click.argument("name")
@pass_settings
def upgrade_command(settings: Settings, name: str) -> None:
    """Upgrade NAME if a newer version is available."""
    with open_manager(settings) as manager:
        result = manager.upgrade(name)
    print_upgrade_result(result)


@click.command("search")
@click.argument("query")
@pass_settings
def search_command(settings: Settings, query: str) -> None:
    """Search available packages by name or description (case-sensitive)."""
    with open_manager(settings) as manager:
        records = manager.search(query)
    print_search_results(query, records)


@click.command("list")
@pass_settings
def list_command(settings: Settings) -> None:
    """List installed packages."""
    with open_manager(settings) as manager:
        packages = manager.list_installed()
    print_installed(packages)
