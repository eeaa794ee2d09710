"""SQLModel table definitions for pkgledger's persisted state.

Four relations:

- ``installed_packages``: one row per installed name.
- ``available_packages``: the repository index, keyed by
  (name, version, repository).
- ``transactions``: the append-only operation ledger.
- ``repositories``: a mirror of the repository configuration file.

List-valued columns (dependencies, conflicts, files, packages) are stored
as JSON-encoded string lists.
"""

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlmodel import JSON, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstalledPackageRow(SQLModel, table=True):
    __tablename__ = "installed_packages"  # type: ignore[assignment]

    name: str = Field(primary_key=True)
    version: str
    architecture: str = ""
    description: str = ""
    dependencies: list[str] = Field(sa_type=JSON, default_factory=list)
    conflicts: list[str] = Field(sa_type=JSON, default_factory=list)
    size: int = 0
    install_date: datetime = Field(default_factory=utcnow)
    files: list[str] = Field(sa_type=JSON, default_factory=list)


class AvailablePackageRow(SQLModel, table=True):
    __tablename__ = "available_packages"  # type: ignore[assignment]
    __table_args__ = (sa.Index("idx_pkg_name", "name"),)

    name: str = Field(primary_key=True)
    version: str = Field(primary_key=True)
    repository: str = Field(primary_key=True)
    architecture: str = ""
    description: str = ""
    dependencies: list[str] = Field(sa_type=JSON, default_factory=list)
    conflicts: list[str] = Field(sa_type=JSON, default_factory=list)
    size: int = 0
    url: str = ""
    checksum: str = ""
    signature: str | None = None


class TransactionRow(SQLModel, table=True):
    __tablename__ = "transactions"  # type: ignore[assignment]
    # AUTOINCREMENT keeps ids monotonic; SQLite would otherwise reuse rowids.
    __table_args__ = (
        sa.Index("idx_trans_time", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id: int | None = Field(default=None, primary_key=True)
    type: str
    packages: list[str] = Field(sa_type=JSON, default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    success: bool = False
    finished_at: datetime | None = None


class RepositoryRow(SQLModel, table=True):
    __tablename__ = "repositories"  # type: ignore[assignment]

    name: str = Field(primary_key=True)
    url: str
    priority: int = 0
    enabled: bool = True
    trusted: bool = False
