"""Installed-Set Store: the record of what is currently installed.

The store is the only writer of ``installed_packages`` rows. The resolver
and conflict checker only call the read methods.
"""

from __future__ import annotations

import logging

from sqlmodel import select

from pkgledger.core.models import InstalledPackage
from pkgledger.store.database import Database
from pkgledger.store.tables import InstalledPackageRow, utcnow

logger = logging.getLogger(__name__)


def _to_model(row: InstalledPackageRow) -> InstalledPackage:
    return InstalledPackage(
        name=row.name,
        version=row.version,
        architecture=row.architecture,
        description=row.description,
        dependencies=list(row.dependencies or []),
        conflicts=list(row.conflicts or []),
        size=row.size,
        install_date=row.install_date,
        files=list(row.files or []),
    )


class InstalledSetStore:
    """Installed packages keyed by name (at most one version per name)."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def contains(self, name: str) -> bool:
        with self._db.session() as session:
            return session.get(InstalledPackageRow, name) is not None

    def get(self, name: str) -> InstalledPackage | None:
        with self._db.session() as session:
            row = session.get(InstalledPackageRow, name)
            return _to_model(row) if row is not None else None

    def list(self) -> list[InstalledPackage]:
        """Return every installed package, ordered by name."""
        with self._db.session() as session:
            rows = session.exec(
                select(InstalledPackageRow).order_by(InstalledPackageRow.name)
            ).all()
            return [_to_model(row) for row in rows]

    def upsert(self, package: InstalledPackage) -> None:
        """Insert or replace the row for ``package.name``.

        ``install_date`` is stamped now unless the caller set one.
        """
        row = InstalledPackageRow(
            name=package.name,
            version=package.version,
            architecture=package.architecture,
            description=package.description,
            dependencies=list(package.dependencies),
            conflicts=list(package.conflicts),
            size=package.size,
            install_date=package.install_date or utcnow(),
            files=list(package.files),
        )
        with self._db.transaction() as session:
            session.merge(row)
        logger.debug("Recorded %s %s as installed", package.name, package.version)

    def delete(self, name: str) -> bool:
        """Delete the row for ``name``; return False if there was none."""
        with self._db.transaction() as session:
            row = session.get(InstalledPackageRow, name)
            if row is None:
                return False
            session.delete(row)
        return True

    def dependents_of(self, name: str) -> list[str]:
        """Return installed packages whose snapshotted dependencies include ``name``.

        Matches whole names only: removing ``foo`` is not blocked by an
        installed package that depends on ``foobar``.
        """
        with self._db.session() as session:
            rows = session.exec(select(InstalledPackageRow)).all()
            return sorted(
                row.name
                for row in rows
                if row.name != name and name in (row.dependencies or [])
            )
