"""pkgledger exception hierarchy.

All public exceptions inherit from PkgLedgerError, giving callers a single
base class to catch when they want to handle any pkgledger-specific failure
without swallowing unrelated errors.

Resolution-time errors (not found, conflict, dependent exists) are raised
before any ledger entry is written. Per-package apply failures are caught by
the orchestrator and surface to callers as a generic
``TransactionFailedError``.
"""

from __future__ import annotations


class PkgLedgerError(Exception):
    """Base exception for all pkgledger errors."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(PkgLedgerError):
    """Raised when a named entity is absent from the store it was looked up in."""


class PackageNotFoundError(NotFoundError):
    """Raised when a package name has no record in the repository index."""

    def __init__(self, name: str) -> None:
        super().__init__(f"package {name} not found")
        self.name = name


class NotInstalledError(NotFoundError):
    """Raised when an operation requires a package that is not installed."""

    def __init__(self, name: str) -> None:
        super().__init__(f"package {name} is not installed")
        self.name = name


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction id is unknown to the ledger."""

    def __init__(self, transaction_id: int) -> None:
        super().__init__(f"transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class RepositoryNotFoundError(NotFoundError):
    """Raised when a repository name is not configured."""

    def __init__(self, name: str) -> None:
        super().__init__(f"repository {name} not found")
        self.name = name


# ---------------------------------------------------------------------------
# Pre-transaction refusals
# ---------------------------------------------------------------------------


class ConflictError(PkgLedgerError):
    """Raised when a candidate package declares a conflict with another name.

    Attributes:
        package: The candidate whose conflict list triggered the error.
        other: The conflicting package name.
        installed: True if ``other`` is currently installed, False if it is
            another member of the candidate set.
    """

    def __init__(self, package: str, other: str, *, installed: bool) -> None:
        where = "installed package " if installed else ""
        super().__init__(f"conflict: {package} conflicts with {where}{other}")
        self.package = package
        self.other = other
        self.installed = installed


class DependentExistsError(PkgLedgerError):
    """Raised when removal is blocked by installed packages that depend on the target."""

    def __init__(self, package: str, dependents: list[str]) -> None:
        super().__init__(
            f"cannot remove {package}: required by {', '.join(dependents)}"
        )
        self.package = package
        self.dependents = list(dependents)


# ---------------------------------------------------------------------------
# Apply-time failures
# ---------------------------------------------------------------------------


class ApplyError(PkgLedgerError):
    """Raised when a single package cannot be acquired or recorded.

    Covers artifact download failures, checksum mismatches and
    installed-set write failures.
    """

    def __init__(self, package: str, reason: str) -> None:
        super().__init__(f"failed to apply {package}: {reason}")
        self.package = package
        self.reason = reason


_FAILURE_MESSAGES: dict[str, str] = {
    "install": "installation failed",
    "remove": "removal failed",
    "upgrade": "upgrade failed",
}


class TransactionFailedError(PkgLedgerError):
    """Raised when a ledger transaction closes with success=False.

    The message is generic; the underlying per-package error
    is logged where it happened and kept on ``package``.
    """

    def __init__(self, kind: str, transaction_id: int, package: str | None = None) -> None:
        super().__init__(_FAILURE_MESSAGES.get(kind, f"{kind} failed"))
        self.kind = kind
        self.transaction_id = transaction_id
        self.package = package


class RollbackError(PkgLedgerError):
    """Raised when a transaction kind cannot be reversed."""

    def __init__(self, transaction_id: int, reason: str) -> None:
        super().__init__(f"cannot roll back transaction {transaction_id}: {reason}")
        self.transaction_id = transaction_id


# ---------------------------------------------------------------------------
# Repository sync
# ---------------------------------------------------------------------------


class RepositorySyncError(PkgLedgerError):
    """Recoverable per-repository failure during index sync.

    Never propagated out of ``RepositoryIndex.sync``; logged and collected
    in the sync report so that other repositories still update.
    """

    def __init__(self, repository: str, reason: str) -> None:
        super().__init__(f"failed to sync {repository}: {reason}")
        self.repository = repository
        self.reason = reason
