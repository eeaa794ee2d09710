"""Install/Remove/Upgrade orchestration.

``PackageManager`` is the top-level state machine. For an install it moves
through these phases::

    RESOLVING -> CHECKING -> TRANSACTION_OPEN -> APPLYING -> TRANSACTION_CLOSED

Failure policy:

- A resolution or conflict error aborts before a ledger entry exists, so
  nothing is recorded at all.
- During APPLYING, the first per-package failure is logged and halts the
  loop. Packages applied before it stay applied and the rest are never
  attempted. Within a transaction there is no compensation.
- The ledger entry is closed with ``success=False`` and the caller receives a
  generic ``TransactionFailedError``. The per-package cause is in the log
  and on the error's ``package`` attribute.

A failed install therefore leaves the installed set partially changed, and
the ledger records that. Callers should inspect the result rather than
retry automatically.

Example::

    manager = PackageManager.open(Settings(Path("/")))
    report = manager.install("nginx")
    manager.rollback(report.transaction_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from pkgledger.config import RepositoryConfig, Settings
from pkgledger.core.backend import BuildBackend, CachingDownloadBackend, clean_cache
from pkgledger.core.dependency import ConflictChecker, DependencyResolver
from pkgledger.core.index import RepositoryIndex, SyncReport
from pkgledger.core.ledger import DEFAULT_HISTORY_LIMIT, TransactionLog
from pkgledger.core.models import (
    InstalledPackage,
    PackageRecord,
    RepositoryDescriptor,
    TransactionKind,
    TransactionRecord,
)
from pkgledger.exceptions import (
    ApplyError,
    DependentExistsError,
    NotInstalledError,
    PackageNotFoundError,
    PkgLedgerError,
    RollbackError,
    TransactionFailedError,
)
from pkgledger.store.database import Database
from pkgledger.store.installed import InstalledSetStore

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """States of an install operation."""

    RESOLVING = "resolving"
    CHECKING = "checking"
    TRANSACTION_OPEN = "transaction-open"
    APPLYING = "applying"
    TRANSACTION_CLOSED = "transaction-closed"


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass
class InstallReport:
    """A successful install.

    Attributes:
        transaction_id: Ledger entry recording the install.
        packages: Applied names, in application order.
    """

    transaction_id: int
    packages: list[str] = field(default_factory=list)


@dataclass
class UpgradeResult:
    """Outcome of ``upgrade``.

    ``upgraded=False`` means "already latest": nothing was written and no
    ledger entry exists.
    """

    name: str
    installed_version: str
    available_version: str
    upgraded: bool
    transaction_id: int | None = None


@dataclass
class RollbackReport:
    """Outcome of ``rollback``.

    Attributes:
        transaction_id: The transaction that was reversed.
        kind: Its kind.
        succeeded: Names whose reversing operation succeeded.
        failed: Name -> error message for reversing operations that failed.
    """

    transaction_id: int
    kind: TransactionKind
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


# ---------------------------------------------------------------------------
# PackageManager
# ---------------------------------------------------------------------------


class PackageManager:
    """Sequences resolution, conflict checking, ledger and application.

    Single-threaded and single-writer: no locking beyond what SQLite does
    per statement.

    Args:
        index: Repository index.
        installed: Installed-set store.
        ledger: Transaction log.
        backend: Artifact producer used during APPLYING.
        cache_dir: Directory ``clean`` empties, if any.
        db: Database shared by the stores above. ``close`` disposes of it;
            when omitted, the caller owns its lifetime.
    """

    def __init__(
        self,
        index: RepositoryIndex,
        installed: InstalledSetStore,
        ledger: TransactionLog,
        backend: BuildBackend,
        *,
        cache_dir: Path | None = None,
        db: Database | None = None,
    ) -> None:
        self.index = index
        self.installed = installed
        self.ledger = ledger
        self.backend = backend
        self.resolver = DependencyResolver(index, installed)
        self.conflicts = ConflictChecker(index, installed)
        self._cache_dir = cache_dir
        self._db = db

    @classmethod
    def open(cls, settings: Settings, backend: BuildBackend | None = None) -> PackageManager:
        """Wire up the full stack under ``settings.root``.

        Creates the state directories and database if missing, loads (or
        seeds) the repository configuration and mirrors it into the
        ``repositories`` table.
        """
        settings.ensure_dirs()
        db = Database(settings.database_url)
        config = RepositoryConfig.load(settings.repos_file)
        index = RepositoryIndex(db, config)
        index.record_repositories()
        return cls(
            index,
            InstalledSetStore(db),
            TransactionLog(db),
            backend or CachingDownloadBackend(settings.cache_dir),
            cache_dir=settings.cache_dir,
            db=db,
        )

    def close(self) -> None:
        if self._db is not None:
            self._db.close()

    # -- Install ------------------------------------------------------------

    def install(self, name: str) -> InstallReport:
        """Install ``name`` and everything it transitively needs.

        Raises:
            PackageNotFoundError: If resolution hits an unknown name.
            ConflictError: If the candidate set conflicts.
            TransactionFailedError: If applying any package failed.
        """
        self._phase(name, Phase.RESOLVING)
        logger.info("Resolving dependencies for %s...", name)
        packages = self.resolver.plan(name)

        self._phase(name, Phase.CHECKING)
        self.conflicts.check(packages)
        logger.info("Packages to install: %s", ", ".join(packages))

        self._phase(name, Phase.TRANSACTION_OPEN)
        transaction_id = self.ledger.begin(TransactionKind.INSTALL, packages)

        self._phase(name, Phase.APPLYING)
        failed = self._apply_all(packages)

        self._phase(name, Phase.TRANSACTION_CLOSED)
        self.ledger.end(transaction_id, failed is None)

        if failed is not None:
            raise TransactionFailedError(TransactionKind.INSTALL.value, transaction_id, failed)
        logger.info("Installation of %s completed successfully", name)
        return InstallReport(transaction_id=transaction_id, packages=packages)

    def _apply_all(self, packages: list[str]) -> str | None:
        """Apply ``packages`` in order; return the first one that failed."""
        for package in packages:
            try:
                self._apply(package)
            except ApplyError as exc:
                logger.error("Error installing %s: %s", package, exc.reason)
                return package
            except Exception:
                logger.exception("Error installing %s", package)
                return package
        return None

    def _apply(self, name: str) -> InstalledPackage:
        """Acquire ``name``'s artifact and record a metadata snapshot of it."""
        try:
            record: PackageRecord = self.index.lookup_latest(name)
        except PackageNotFoundError as exc:
            raise ApplyError(name, "no repository provides it") from exc

        logger.info("Installing %s %s...", record.name, record.version)
        artifact = self.backend.acquire(record)
        package = InstalledPackage.from_record(record, artifact.files)
        try:
            self.installed.upsert(package)
        except SQLAlchemyError as exc:
            raise ApplyError(name, f"could not record installation: {exc}") from exc
        return package

    @staticmethod
    def _phase(name: str, phase: Phase) -> None:
        logger.debug("install %s: %s", name, phase.value)

    # -- Remove -------------------------------------------------------------

    def remove(self, name: str) -> int:
        """Remove an installed package; return the ledger id.

        Raises:
            NotInstalledError: If ``name`` is not installed.
            DependentExistsError: If other installed packages depend on it.
            TransactionFailedError: If the row could not be deleted.
        """
        if not self.installed.contains(name):
            raise NotInstalledError(name)

        dependents = self.installed.dependents_of(name)
        if dependents:
            raise DependentExistsError(name, dependents)

        logger.info("Removing %s...", name)
        transaction_id = self.ledger.begin(TransactionKind.REMOVE, [name])
        try:
            deleted = self.installed.delete(name)
        except SQLAlchemyError:
            logger.error("Error removing %s", name, exc_info=True)
            deleted = False
        self.ledger.end(transaction_id, deleted)

        if not deleted:
            raise TransactionFailedError(TransactionKind.REMOVE.value, transaction_id, name)
        logger.info("Package %s removed successfully", name)
        return transaction_id

    # -- Upgrade ------------------------------------------------------------

    def upgrade(self, name: str) -> UpgradeResult:
        """Re-apply ``name`` at its latest version if that is newer.

        The upgrade target's own dependencies are not re-resolved or
        re-checked.

        Raises:
            NotInstalledError: If ``name`` is not installed.
            PackageNotFoundError: If no repository lists ``name``.
            TransactionFailedError: If applying the new version failed.
        """
        current = self.installed.get(name)
        if current is None:
            raise NotInstalledError(name)
        latest = self.index.lookup_latest(name)

        if current.version >= latest.version:
            logger.info("%s is already at the latest version (%s)", name, current.version)
            return UpgradeResult(
                name=name,
                installed_version=current.version,
                available_version=latest.version,
                upgraded=False,
            )

        logger.info("Upgrading %s from %s to %s...", name, current.version, latest.version)
        transaction_id = self.ledger.begin(TransactionKind.UPGRADE, [name])
        failed = self._apply_all([name])
        self.ledger.end(transaction_id, failed is None)
        if failed is not None:
            raise TransactionFailedError(TransactionKind.UPGRADE.value, transaction_id, failed)

        return UpgradeResult(
            name=name,
            installed_version=current.version,
            available_version=latest.version,
            upgraded=True,
            transaction_id=transaction_id,
        )

    # -- Rollback -----------------------------------------------------------

    def rollback(self, transaction_id: int) -> RollbackReport:
        """Reverse a past transaction by running the opposite operations.

        An install is reversed by removing its packages, last-applied first,
        so dependents go before their dependencies. A remove is reversed by
        installing its packages again. Each sub-operation is independent and
        writes its own ledger entries. One failing never stops the others.
        The original entry is left untouched.

        Raises:
            TransactionNotFoundError: If ``transaction_id`` is unknown.
            RollbackError: If the transaction is an upgrade.
        """
        record = self.ledger.get(transaction_id)
        report = RollbackReport(transaction_id=transaction_id, kind=record.kind)
        logger.info("Rolling back transaction %d (%s)...", transaction_id, record.kind.value)

        if record.kind is TransactionKind.INSTALL:
            for name in reversed(record.packages):
                self._rollback_step(report, name, self.remove)
        elif record.kind is TransactionKind.REMOVE:
            for name in record.packages:
                self._rollback_step(report, name, self.install)
        else:
            raise RollbackError(transaction_id, "upgrades do not retain the previous version")
        return report

    @staticmethod
    def _rollback_step(report: RollbackReport, name: str, operation) -> None:
        try:
            operation(name)
        except PkgLedgerError as exc:
            logger.warning("Rollback of %s failed: %s", name, exc)
            report.failed[name] = str(exc)
        else:
            report.succeeded.append(name)

    # -- Queries and maintenance --------------------------------------------

    def list_installed(self) -> list[InstalledPackage]:
        return self.installed.list()

    def search(self, query: str) -> list[PackageRecord]:
        return self.index.search(query)

    def history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[TransactionRecord]:
        return self.ledger.history(limit)

    def get_transaction(self, transaction_id: int) -> TransactionRecord:
        return self.ledger.get(transaction_id)

    async def update(self, *, prune: bool = False) -> SyncReport:
        """Sync the index from every enabled repository."""
        logger.info("Updating package lists...")
        return await self.index.sync(prune=prune)

    def clean(self) -> int:
        """Empty the package cache; return the number of files removed."""
        if self._cache_dir is None:
            return 0
        return clean_cache(self._cache_dir)

    @property
    def repositories(self) -> list[RepositoryDescriptor]:
        return self.index.config.descriptors

    def add_repository(
        self, name: str, url: str, priority: int = 0, trusted: bool = False
    ) -> RepositoryDescriptor:
        return self.index.add_repository(name, url, priority=priority, trusted=trusted)

    def remove_repository(self, name: str) -> None:
        self.index.remove_repository(name)
