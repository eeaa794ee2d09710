"""Rich output formatting helpers for the pkgledger CLI.

Provides consistent terminal output for installed packages, search results,
transaction history, rollback outcomes and repository sync reports.

Transaction status colors:
    ok = green, failed = bold red, pending = yellow
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.table import Table
from rich.text import Text

from pkgledger.core.index import SyncReport
from pkgledger.core.manager import InstallReport, RollbackReport, UpgradeResult
from pkgledger.core.models import (
    InstalledPackage,
    PackageRecord,
    RepositoryDescriptor,
    TransactionRecord,
)

console = Console()

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_time(value: datetime | None) -> str:
    return value.strftime(_TIME_FORMAT) if value else "-"


def transaction_status(record: TransactionRecord) -> Text:
    """Return the colored status cell for a ledger entry."""
    if record.pending:
        return Text("pending", style="yellow")
    if record.success:
        return Text("ok", style="green")
    return Text("failed", style="bold red")


def print_installed(packages: list[InstalledPackage]) -> None:
    """Print the installed set as a table.

    Args:
        packages: Installed packages, already ordered by name.
    """
    if not packages:
        console.print("[dim]No packages installed.[/dim]")
        return

    table = Table(title="Installed Packages", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Arch", style="dim")
    table.add_column("Installed", style="dim")
    table.add_column("Description")
    for pkg in packages:
        table.add_row(
            pkg.name, pkg.version, pkg.architecture or "-",
            _format_time(pkg.install_date), pkg.description,
        )
    console.print(table)
    console.print(f"[bold]{len(packages)}[/bold] packages installed")


def print_search_results(query: str, records: list[PackageRecord]) -> None:
    """Print index records matching ``query``."""
    if not records:
        console.print(f"[dim]No packages matching '{query}'.[/dim]")
        return

    table = Table(title=f"Search: {query}", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Repository", style="cyan")
    table.add_column("Description")
    for record in records:
        table.add_row(record.name, record.version, record.repository, record.description)
    console.print(table)


def print_history(records: list[TransactionRecord]) -> None:
    """Print ledger entries, newest first."""
    if not records:
        console.print("[dim]No transactions recorded.[/dim]")
        return

    table = Table(title="Transaction History", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Packages")
    table.add_column("Started", style="dim")
    table.add_column("Status", justify="center")
    for record in records:
        table.add_row(
            str(record.id), record.kind.value, ", ".join(record.packages),
            _format_time(record.timestamp), transaction_status(record),
        )
    console.print(table)


def print_install_report(report: InstallReport) -> None:
    console.print(
        f"[green]Installed[/green] {', '.join(report.packages)} "
        f"(transaction {report.transaction_id})"
    )


def print_upgrade_result(result: UpgradeResult) -> None:
    if not result.upgraded:
        console.print(
            f"{result.name} is already at the latest version ({result.installed_version})"
        )
        return
    console.print(
        f"[green]Upgraded[/green] {result.name} "
        f"{result.installed_version} -> {result.available_version} "
        f"(transaction {result.transaction_id})"
    )


def print_rollback_report(report: RollbackReport) -> None:
    """Print which reversing operations succeeded and which failed.

    Args:
        report: Outcome of ``PackageManager.rollback``.
    """
    console.print(
        f"Rolled back transaction [bold]{report.transaction_id}[/bold] ({report.kind.value})"
    )
    for name in report.succeeded:
        console.print(f"  [green]ok[/green]     {name}")
    for name, message in report.failed.items():
        console.print(f"  [red]failed[/red] {name}: {message}")


def print_sync_report(report: SyncReport) -> None:
    """Print per-repository package counts and any sync errors."""
    for repository, count in report.updated.items():
        console.print(f"  [green]{repository}[/green]: {count} packages")
    for error in report.errors:
        console.print(f"  [red]{error.repository}[/red]: {error.reason}")
    if report.skipped_entries:
        console.print(f"  [yellow]{report.skipped_entries} malformed entries skipped[/yellow]")


def print_repositories(repositories: list[RepositoryDescriptor]) -> None:
    if not repositories:
        console.print("[dim]No repositories configured.[/dim]")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("URL")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled", justify="center")
    table.add_column("Trusted", justify="center")
    for repo in repositories:
        table.add_row(
            repo.name, repo.url, str(repo.priority),
            "yes" if repo.enabled else "no",
            "yes" if repo.trusted else "no",
        )
    console.print(table)
