"""Core data models: package records, installed snapshots, ledger entries.

These are pure data holders (dataclasses) with no storage or network logic,
making them safe to import from every layer without circular-dependency
concerns. The storage layer converts between these and its table rows.

Versions are opaque strings compared with plain string ordering, so
``"9" > "10"``. Every "latest version" decision in pkgledger goes through
that ordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ---------------------------------------------------------------------------
# PackageRecord: a published, installable unit in the repository index
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackageRecord:
    """An immutable description of one package version in one repository.

    Several records may share a name across versions and repositories; the
    one selected for resolution is the highest version string, independent
    of the repository it came from.

    Attributes:
        name: Package name, the primary identity within a repository.
        version: Opaque version string, ordered lexicographically.
        repository: Name of the repository the record was synced from.
        architecture: Target architecture (e.g., "x86_64", "any").
        description: One-line description, searched by ``search``.
        dependencies: Names this package requires, in declared order.
        conflicts: Names this package cannot coexist with, in declared order.
        size: Artifact size in bytes.
        url: Retrieval URL for the artifact.
        checksum: SHA-256 of the artifact, hex (optionally "sha256:" prefixed).
        signature: Detached signature, stored but not verified.
    """

    name: str
    version: str
    repository: str = ""
    architecture: str = ""
    description: str = ""
    dependencies: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()
    size: int = 0
    url: str = ""
    checksum: str = ""
    signature: str | None = None


# ---------------------------------------------------------------------------
# InstalledPackage: one row of the installed set
# ---------------------------------------------------------------------------


@dataclass
class InstalledPackage:
    """A package currently installed, keyed by name.

    ``dependencies``, ``conflicts`` and ``size`` are a snapshot taken at
    install time. A later repository sync never changes them.
    """

    name: str
    version: str
    architecture: str = ""
    description: str = ""
    dependencies: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    size: int = 0
    install_date: datetime | None = None
    files: list[str] = field(default_factory=list)

    @classmethod
    def from_record(
        cls, record: PackageRecord, files: list[str] | None = None
    ) -> InstalledPackage:
        """Snapshot a ``PackageRecord`` into an installed-set entry."""
        return cls(
            name=record.name,
            version=record.version,
            architecture=record.architecture,
            description=record.description,
            dependencies=list(record.dependencies),
            conflicts=list(record.conflicts),
            size=record.size,
            files=list(files or []),
        )


# ---------------------------------------------------------------------------
# RepositoryDescriptor: configured package source
# ---------------------------------------------------------------------------


@dataclass
class RepositoryDescriptor:
    """A configured repository.

    ``priority`` and ``trusted`` are informational; neither changes which
    record ``lookup_latest`` selects.
    """

    name: str
    url: str
    priority: int = 0
    enabled: bool = True
    trusted: bool = False

    @property
    def packages_url(self) -> str:
        """Return the URL of this repository's package list."""
        return f"{self.url.rstrip('/')}/packages.json"


# ---------------------------------------------------------------------------
# Transaction ledger
# ---------------------------------------------------------------------------


class TransactionKind(str, Enum):
    """The operation a ledger entry records."""

    INSTALL = "install"
    REMOVE = "remove"
    UPGRADE = "upgrade"


@dataclass
class TransactionRecord:
    """One entry of the append-only transaction ledger.

    Created pending (``success=False``, ``finished_at=None``) before any
    package is touched and closed exactly once afterwards. A record whose
    process died mid-operation stays pending forever.
    """

    id: int
    kind: TransactionKind
    packages: list[str]
    timestamp: datetime
    success: bool = False
    finished_at: datetime | None = None

    @property
    def pending(self) -> bool:
        """True until ``TransactionLog.end`` has closed this record."""
        return self.finished_at is None


# ---------------------------------------------------------------------------
# Artifact: what the build backend hands back
# ---------------------------------------------------------------------------


@dataclass
class Artifact:
    """A ready-to-install package artifact and its file manifest."""

    name: str
    version: str
    files: list[str] = field(default_factory=list)
