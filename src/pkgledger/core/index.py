"""Repository Index: the catalogue of known packages.

Rows are keyed by (name, version, repository) and refreshed by ``sync``,
which fetches ``<repository-url>/packages.json`` from every enabled
repository. Each package object in that list carries the fields ``name``,
``version``, ``arch``, ``description``, ``dependencies``, ``conflicts``,
``size``, ``url``, ``checksum`` and ``signature``.

Sync is failure-tolerant per repository: a fetch or parse problem with one
repository is logged, recorded in the ``SyncReport`` and skipped, and the
remaining repositories are still synced. Each repository's rows are written
in a single storage transaction.

Usage::

    index = RepositoryIndex(db, RepositoryConfig.load(settings.repos_file))
    report = await index.sync()
    record = index.lookup_latest("nginx")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from sqlmodel import col, func, or_, select

from pkgledger.config import RepositoryConfig
from pkgledger.core.models import PackageRecord, RepositoryDescriptor
from pkgledger.exceptions import PackageNotFoundError, RepositorySyncError
from pkgledger.registry.http_client import fetch_json
from pkgledger.store.database import Database
from pkgledger.store.tables import AvailablePackageRow, RepositoryRow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# SyncReport
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    """Outcome of one ``RepositoryIndex.sync`` run.

    Attributes:
        updated: Repository name -> number of package entries stored.
        errors: Per-repository failures that were logged and skipped.
        skipped_entries: Number of malformed package entries ignored.
    """

    updated: dict[str, int] = field(default_factory=dict)
    errors: list[RepositorySyncError] = field(default_factory=list)
    skipped_entries: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def _to_record(row: AvailablePackageRow) -> PackageRecord:
    return PackageRecord(
        name=row.name,
        version=row.version,
        repository=row.repository,
        architecture=row.architecture,
        description=row.description,
        dependencies=tuple(row.dependencies or ()),
        conflicts=tuple(row.conflicts or ()),
        size=row.size,
        url=row.url,
        checksum=row.checksum,
        signature=row.signature,
    )


def _to_row(record: PackageRecord) -> AvailablePackageRow:
    return AvailablePackageRow(
        name=record.name,
        version=record.version,
        repository=record.repository,
        architecture=record.architecture,
        description=record.description,
        dependencies=list(record.dependencies),
        conflicts=list(record.conflicts),
        size=record.size,
        url=record.url,
        checksum=record.checksum,
        signature=record.signature,
    )


def _str_list(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {type(value).__name__}")
    if not all(isinstance(item, str) for item in value):
        raise ValueError("expected a list of package names")
    return tuple(value)


def _str_field(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _parse_package_entry(item: Any, repository: str) -> PackageRecord | None:
    """Parse one raw JSON package object; None if it is unusable."""
    if not isinstance(item, dict):
        return None
    try:
        name = _str_field(item, "name")
        version = _str_field(item, "version")
        if not name or not version:
            return None
        return PackageRecord(
            name=name,
            version=version,
            repository=repository,
            architecture=_str_field(item, "arch"),
            description=_str_field(item, "description"),
            dependencies=_str_list(item.get("dependencies")),
            conflicts=_str_list(item.get("conflicts")),
            size=int(item.get("size") or 0),
            url=_str_field(item, "url"),
            checksum=_str_field(item, "checksum"),
            signature=_str_field(item, "signature") or None,
        )
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# RepositoryIndex
# ---------------------------------------------------------------------------


class RepositoryIndex:
    """Query and sync surface over the ``available_packages`` relation.

    Args:
        db: The shared database.
        config: Repository configuration; consulted by ``sync`` and mutated
            by ``add_repository`` / ``remove_repository``.
    """

    def __init__(self, db: Database, config: RepositoryConfig) -> None:
        self._db = db
        self._config = config

    @property
    def config(self) -> RepositoryConfig:
        return self._config

    # -- Sync ---------------------------------------------------------------

    async def sync(
        self,
        descriptors: Iterable[RepositoryDescriptor] | None = None,
        *,
        prune: bool = False,
    ) -> SyncReport:
        """Refresh the index from every enabled repository.

        Args:
            descriptors: Repositories to sync. Defaults to the enabled
                repositories of the configuration. Disabled entries are
                skipped either way.
            prune: If True, rows a repository no longer lists are deleted.
                By default, stale rows from earlier syncs are kept.

        Returns:
            A ``SyncReport``. Never raises for per-repository failures.
        """
        repos = list(descriptors) if descriptors is not None else self._config.enabled()
        report = SyncReport()

        for repo in repos:
            if not repo.enabled:
                continue
            logger.info("Fetching %s...", repo.name)
            try:
                records, skipped = await self._fetch_repository(repo)
                self.replace_packages(repo.name, records, prune=prune)
            except RepositorySyncError as exc:
                logger.warning("%s", exc)
                report.errors.append(exc)
                continue
            except Exception as exc:
                err = RepositorySyncError(repo.name, str(exc))
                logger.warning("%s", err, exc_info=True)
                report.errors.append(err)
                continue
            report.updated[repo.name] = len(records)
            report.skipped_entries += skipped
            logger.info("Updated %s: %d packages", repo.name, len(records))

        return report

    async def _fetch_repository(
        self, repo: RepositoryDescriptor
    ) -> tuple[list[PackageRecord], int]:
        data = await fetch_json(repo.packages_url)
        if not isinstance(data, list):
            raise RepositorySyncError(
                repo.name, f"no package list at {repo.packages_url}"
            )

        records: list[PackageRecord] = []
        skipped = 0
        for item in data:
            record = _parse_package_entry(item, repo.name)
            if record is None:
                skipped += 1
                logger.warning("Skipping malformed package entry in %s: %r", repo.name, item)
                continue
            records.append(record)
        return records, skipped

    def replace_packages(
        self, repository: str, records: Iterable[PackageRecord], *, prune: bool = False
    ) -> None:
        """Upsert ``records`` for ``repository`` in one storage transaction.

        With ``prune``, the repository's existing rows are deleted first,
        so the index holds exactly ``records`` for it afterwards.
        """
        with self._db.transaction() as session:
            if prune:
                stale = session.exec(
                    select(AvailablePackageRow).where(
                        AvailablePackageRow.repository == repository
                    )
                ).all()
                for row in stale:
                    session.delete(row)
                session.flush()
            for record in records:
                if record.repository != repository:
                    record = replace(record, repository=repository)
                session.merge(_to_row(record))

    # -- Queries ------------------------------------------------------------

    def lookup_latest(self, name: str) -> PackageRecord:
        """Return the highest-version record for ``name`` across repositories.

        Versions compare as plain strings. Equal versions in several
        repositories resolve to the lowest repository name.

        Raises:
            PackageNotFoundError: If no repository lists ``name``.
        """
        with self._db.session() as session:
            row = session.exec(
                select(AvailablePackageRow)
                .where(AvailablePackageRow.name == name)
                .order_by(
                    col(AvailablePackageRow.version).desc(),
                    col(AvailablePackageRow.repository).asc(),
                )
                .limit(1)
            ).first()
        if row is None:
            raise PackageNotFoundError(name)
        return _to_record(row)

    def versions(self, name: str) -> list[str]:
        """Return every known version of ``name``, newest first."""
        with self._db.session() as session:
            rows = session.exec(
                select(AvailablePackageRow.version)
                .where(AvailablePackageRow.name == name)
                .distinct()
                .order_by(col(AvailablePackageRow.version).desc())
            ).all()
        return list(rows)

    def search(self, query: str) -> list[PackageRecord]:
        """Find packages whose name or description contains ``query``.

        Matching is case-sensitive. Each (name, version) pair appears
        once, ordered by name with the newest version first.
        """
        with self._db.session() as session:
            rows = session.exec(
                select(AvailablePackageRow)
                .where(
                    or_(
                        func.instr(AvailablePackageRow.name, query) > 0,
                        func.instr(AvailablePackageRow.description, query) > 0,
                    )
                )
                .order_by(
                    col(AvailablePackageRow.name).asc(),
                    col(AvailablePackageRow.version).desc(),
                    col(AvailablePackageRow.repository).asc(),
                )
            ).all()

        seen: set[tuple[str, str]] = set()
        results: list[PackageRecord] = []
        for row in rows:
            key = (row.name, row.version)
            if key in seen:
                continue
            seen.add(key)
            results.append(_to_record(row))
        return results

    def count(self) -> int:
        """Return the number of (name, version, repository) rows in the index."""
        with self._db.session() as session:
            total = session.scalar(select(func.count()).select_from(AvailablePackageRow))
            return total or 0

    # -- Repository configuration -------------------------------------------

    def record_repositories(
        self, descriptors: Iterable[RepositoryDescriptor] | None = None
    ) -> None:
        """Mirror the repository configuration into the ``repositories`` table."""
        repos = list(descriptors) if descriptors is not None else self._config.descriptors
        keep = {repo.name for repo in repos}
        with self._db.transaction() as session:
            for row in session.exec(select(RepositoryRow)).all():
                if row.name not in keep:
                    session.delete(row)
            for repo in repos:
                session.merge(
                    RepositoryRow(
                        name=repo.name,
                        url=repo.url,
                        priority=repo.priority,
                        enabled=repo.enabled,
                        trusted=repo.trusted,
                    )
                )

    def add_repository(
        self, name: str, url: str, priority: int = 0, trusted: bool = False
    ) -> RepositoryDescriptor:
        repo = self._config.add(name, url, priority=priority, trusted=trusted)
        self.record_repositories()
        return repo

    def remove_repository(self, name: str) -> None:
        """Remove a repository from the configuration.

        Its already-synced packages stay in the index.

        Raises:
            RepositoryNotFoundError: If ``name`` is not configured.
        """
        self._config.remove(name)
        self.record_repositories()
