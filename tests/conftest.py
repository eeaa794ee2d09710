"""Shared fixtures for pkgledger tests.

Every test gets a fresh in-memory SQLite database and a fake build backend,
so nothing touches the network or the real filesystem root.
"""

from __future__ import annotations

import pathlib
from collections.abc import Callable, Iterator

import pytest

from pkgledger.config import RepositoryConfig
from pkgledger.core.backend import BuildBackend
from pkgledger.core.index import RepositoryIndex
from pkgledger.core.ledger import TransactionLog
from pkgledger.core.manager import PackageManager
from pkgledger.core.models import Artifact, PackageRecord, RepositoryDescriptor
from pkgledger.exceptions import ApplyError
from pkgledger.store import Database, InstalledSetStore


class FakeBackend(BuildBackend):
    """Records every acquisition and fails for names listed in ``fail``."""

    def __init__(self) -> None:
        self.fail: set[str] = set()
        self.acquired: list[str] = []

    def acquire(self, record: PackageRecord) -> Artifact:
        self.acquired.append(record.name)
        if record.name in self.fail:
            raise ApplyError(record.name, "build failed")
        return Artifact(
            name=record.name,
            version=record.version,
            files=[f"/usr/share/{record.name}/README"],
        )


@pytest.fixture
def db() -> Iterator[Database]:
    """A fresh in-memory database with every table created."""
    database = Database()
    yield database
    database.close()


@pytest.fixture
def repo_config(tmp_path: pathlib.Path) -> RepositoryConfig:
    """Two enabled repositories backed by a temporary file."""
    return RepositoryConfig(
        tmp_path / "repositories.json",
        [
            RepositoryDescriptor(name="main", url="https://repo.test/main", priority=10),
            RepositoryDescriptor(name="extra", url="https://repo.test/extra"),
        ],
    )


@pytest.fixture
def index(db: Database, repo_config: RepositoryConfig) -> RepositoryIndex:
    return RepositoryIndex(db, repo_config)


@pytest.fixture
def installed(db: Database) -> InstalledSetStore:
    return InstalledSetStore(db)


@pytest.fixture
def ledger(db: Database) -> TransactionLog:
    return TransactionLog(db)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def manager(
    index: RepositoryIndex,
    installed: InstalledSetStore,
    ledger: TransactionLog,
    backend: FakeBackend,
    tmp_path: pathlib.Path,
) -> PackageManager:
    """A manager wired to the in-memory stores and the fake backend."""
    return PackageManager(
        index, installed, ledger, backend, cache_dir=tmp_path / "cache"
    )


@pytest.fixture
def publish(index: RepositoryIndex) -> Callable[..., PackageRecord]:
    """Return a helper that adds one package record to the index.

    Usage: ``publish("A", "1.0", deps=["B"], conflicts=["C"])``.
    """

    def _publish(
        name: str,
        version: str = "1.0",
        *,
        deps: list[str] | tuple[str, ...] = (),
        conflicts: list[str] | tuple[str, ...] = (),
        repository: str = "main",
        description: str = "",
    ) -> PackageRecord:
        record = PackageRecord(
            name=name,
            version=version,
            repository=repository,
            description=description,
            dependencies=tuple(deps),
            conflicts=tuple(conflicts),
        )
        index.replace_packages(repository, [record])
        return record

    return _publish
