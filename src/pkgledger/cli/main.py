"""pkgledger CLI: Transactional package management with an audit ledger.

Entry point for the ``pkgledger`` command-line tool. Registers all
subcommands, and their short aliases, under a single Click group.

Commands:
    install (i)   Install a package and its missing dependencies.
    remove (r)    Remove a package nothing else depends on.
    upgrade (u)   Move a package to its latest available version.
    update        Refresh the package index from the repositories.
    search (s)    Search the package index.
    list          List installed packages.
    history       Show recent transactions.
    rollback      Reverse a recorded transaction.
    clean         Empty the package cache.
    repo-add      Add or update a repository.
    repo-remove   Remove a repository.
    repo-list     List configured repositories.

Usage::

    pkgledger update
    pkgledger install nginx
    pkgledger --root /mnt/target i nginx
    pkgledger history --limit 5
    pkgledger rollback 12
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from pkgledger import __version__
from pkgledger.cli.history_cmd import history_command, rollback_command
from pkgledger.cli.package_cmd import (
    install_command,
    list_command,
    remove_command,
    search_command,
    upgrade_command,
)
from pkgledger.cli.repo_cmd import (
    clean_command,
    repo_add_command,
    repo_list_command,
    repo_remove_command,
    update_command,
)
from pkgledger.config import Settings


def _configure_logging(verbose: bool) -> None:
    """Send log records to stderr through Rich.

    WARNING and above by default, INFO with ``--verbose``.
    """
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    logging.getLogger().setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--root",
    default="/",
    envvar="PKGLEDGER_ROOT",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Installation root holding the database, cache and configuration.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log progress.")
@click.pass_context
def cli(ctx: click.Context, root: Path, verbose: bool) -> None:
    """pkgledger: install, remove and roll back packages with an audit ledger.

    Every install, remove and upgrade is recorded as a transaction that can
    be listed with ``history`` and reversed with ``rollback``.
    """
    _configure_logging(verbose)
    ctx.obj = Settings(root=root)


# Register all subcommands
cli.add_command(install_command)
cli.add_command(remove_command)
cli.add_command(upgrade_command)
cli.add_command(update_command)
cli.add_command(search_command)
cli.add_command(list_command)
cli.add_command(history_command)
cli.add_command(rollback_command)
cli.add_command(clean_command)
cli.add_command(repo_add_command)
cli.add_command(repo_remove_command)
cli.add_command(repo_list_command)

# Short aliases
cli.add_command(install_command, name="i")
cli.add_command(remove_command, name="r")
cli.add_command(upgrade_command, name="u")
cli.add_command(search_command, name="s")
