"""Repository commands: ``update``, ``clean``, ``repo-add``, ``repo-remove``, ``repo-list``.

Usage::

    pkgledger update
    pkgledger update --prune
    pkgledger repo-add extra https://repo.example.com/extra 5 true
    pkgledger repo-remove extra
"""

from __future__ import annotations

import asyncio

import click

from pkgledger.cli.output import console, print_repositories, print_sync_report
from pkgledger.cli.session import open_manager, pass_settings
from pkgledger.config import Settings


def _run_async(coro: object) -> object:
    """Run an async coroutine in a synchronous context.

    Args:
        coro: Awaitable coroutine to execute.

    Returns:
        The coroutine's return value.
    """
    return asyncio.run(coro)  # type: ignore[arg-type]


@click.command("update")
@click.option(
    "--prune", is_flag=True, default=False,
    help="Drop index entries a repository no longer lists.",
)
@pass_settings
def update_command(settings: Settings, prune: bool) -> None:
    """Refresh the package index from every enabled repository.

    A repository that cannot be reached is reported and skipped; the others
    are still updated.
    """
    with open_manager(settings) as manager:
        report = _run_async(manager.update(prune=prune))
    print_sync_report(report)  # type: ignore[arg-type]


@click.command("clean")
@pass_settings
def clean_command(settings: Settings) -> None:
    """Delete downloaded artifacts from the package cache."""
    with open_manager(settings) as manager:
        removed = manager.clean()
    console.print(f"Removed {removed} cached files")


@click.command("repo-add")
@click.argument("name")
@click.argument("url")
@click.argument("priority", type=int, default=0, required=False)
@click.argument("trusted", type=click.BOOL, default=False, required=False)
@pass_settings
def repo_add_command(
    settings: Settings, name: str, url: str, priority: int, trusted: bool
) -> None:
    """Add repository NAME at URL, or update it if NAME exists."""
    with open_manager(settings) as manager:
        repo = manager.add_repository(name, url, priority=priority, trusted=trusted)
    console.print(f"Repository [bold]{repo.name}[/bold] -> {repo.url}")


@click.command("repo-remove")
@click.argument("name")
@pass_settings
def repo_remove_command(settings: Settings, name: str) -> None:
    """Remove repository NAME from the configuration."""
    with open_manager(settings) as manager:
        manager.remove_repository(name)
    console.print(f"Removed repository {name}")


@click.command("repo-list")
@pass_settings
def repo_list_command(settings: Settings) -> None:
    """List configured repositories."""
    with open_manager(settings) as manager:
        repositories = manager.repositories
    print_repositories(repositories)
