"""Shared plumbing for CLI commands.

Every command receives the ``Settings`` built by the group callback, opens a
``PackageManager`` for the duration of the command, and reports library
errors as ``Error: <message>`` with exit code 1.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import click
from sqlalchemy.exc import SQLAlchemyError

from pkgledger.config import Settings
from pkgledger.core.manager import PackageManager
from pkgledger.exceptions import PkgLedgerError

pass_settings = click.make_pass_decorator(Settings)


def fail(message: str) -> NoReturn:
    """Print ``message`` to stderr and exit with status 1."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@contextmanager
def open_manager(settings: Settings) -> Iterator[PackageManager]:
    """Open a manager rooted at ``settings.root`` and close it afterwards.

    A state directory, configuration file or database that cannot be opened
    terminates the command, as does any ``PkgLedgerError`` raised inside the
    block.
    """
    try:
        manager = PackageManager.open(settings)
    except json.JSONDecodeError as exc:
        fail(f"invalid repository configuration {settings.repos_file}: {exc}")
    except (OSError, SQLAlchemyError, PkgLedgerError) as exc:
        fail(f"cannot open {settings.root}: {exc}")
    try:
        yield manager
    except PkgLedgerError as exc:
        fail(str(exc))
    finally:
        manager.close()
