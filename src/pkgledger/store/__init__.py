"""Persistent state for pkgledger, stored in SQLite through SQLModel.

Public API::

    from pkgledger.store import Database, InstalledSetStore
"""

from __future__ import annotations

from pkgledger.store.database import Database
from pkgledger.store.installed import InstalledSetStore

__all__ = [
    "Database",
    "InstalledSetStore",
]
