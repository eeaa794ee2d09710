"""Tests for PackageManager: install, remove, upgrade and rollback, with the
ledger accounting each of them must leave behind.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pkgledger.core.manager import PackageManager
from pkgledger.core.models import InstalledPackage, TransactionKind
from pkgledger.exceptions import (
    ConflictError,
    DependentExistsError,
    NotInstalledError,
    PackageNotFoundError,
    RollbackError,
    TransactionFailedError,
    TransactionNotFoundError,
)


# ===========================================================================
# Install
# ===========================================================================


class TestInstall:
    """End-to-end install through resolution, checks, ledger and apply."""

    def test_installs_closure(self, manager: PackageManager, publish, installed, ledger) -> None:
        publish("A", deps=["B"])
        publish("B")

        report = manager.install("A")

        assert report.packages == ["B", "A"]
        assert [p.name for p in installed.list()] == ["A", "B"]
        record = ledger.get(report.transaction_id)
        assert record.kind is TransactionKind.INSTALL
        assert set(record.packages) == {"A", "B"}
        assert record.success is True
        assert not record.pending

    def test_snapshot_and_manifest_recorded(self, manager, publish, installed) -> None:
        publish("A", "2.0", deps=["B"], conflicts=["Z"], description="alpha")
        publish("B")
        manager.install("A")
        pkg = installed.get("A")
        assert pkg.version == "2.0"
        assert pkg.dependencies == ["B"]
        assert pkg.conflicts == ["Z"]
        assert pkg.description == "alpha"
        assert pkg.files == ["/usr/share/A/README"]

    def test_installed_dependency_not_reacquired(self, manager, publish, installed, backend) -> None:
        publish("A", deps=["B"])
        publish("B", deps=["C"])
        installed.upsert(InstalledPackage(name="B", version="1.0", dependencies=["C"]))

        manager.install("A")

        # B is re-applied, C (B's dependency) is never resolved.
        assert backend.acquired == ["B", "A"]
        assert not installed.contains("C")

    def test_unknown_package_writes_nothing(self, manager, installed, ledger) -> None:
        with pytest.raises(PackageNotFoundError):
            manager.install("ghost")
        assert installed.list() == []
        assert ledger.history() == []

    def test_conflict_writes_nothing(self, manager, publish, installed, ledger) -> None:
        publish("A", conflicts=["X"])
        installed.upsert(InstalledPackage(name="X", version="1.0"))
        with pytest.raises(ConflictError):
            manager.install("A")
        assert [p.name for p in installed.list()] == ["X"]
        assert ledger.history() == []

    def test_installed_package_conflict_is_directional(self, manager, publish, installed) -> None:
        publish("A")
        installed.upsert(InstalledPackage(name="X", version="1.0", conflicts=["A"]))
        manager.install("A")
        assert installed.contains("A")

    def test_cycle_installs_both(self, manager, publish, installed) -> None:
        publish("A", deps=["B"])
        publish("B", deps=["A"])
        manager.install("A")
        assert {p.name for p in installed.list()} == {"A", "B"}


class TestPartialFailure:
    """A failing package stops the loop; earlier work is kept."""

    def test_first_failure_halts_remaining(self, manager, publish, installed, ledger, backend) -> None:
        publish("A", deps=["B", "C"])
        publish("B")
        publish("C")
        backend.fail.add("C")

        with pytest.raises(TransactionFailedError) as excinfo:
            manager.install("A")

        err = excinfo.value
        assert str(err) == "installation failed"
        assert err.package == "C"
        assert backend.acquired == ["B", "C"]
        assert [p.name for p in installed.list()] == ["B"]

        record = ledger.get(err.transaction_id)
        assert record.packages == ["B", "C", "A"]
        assert record.success is False
        assert not record.pending

    def test_unexpected_backend_error_fails_transaction(self, manager, publish, backend, ledger) -> None:
        publish("A")

        def explode(record):
            raise OSError("disk full")

        backend.acquire = explode
        with pytest.raises(TransactionFailedError):
            manager.install("A")
        assert ledger.history()[0].success is False


# ===========================================================================
# Remove
# ===========================================================================


class TestRemove:
    def test_removes_and_records(self, manager, publish, installed, ledger) -> None:
        publish("A")
        manager.install("A")
        tid = manager.remove("A")
        assert not installed.contains("A")
        record = ledger.get(tid)
        assert (record.kind, record.packages, record.success) == (
            TransactionKind.REMOVE, ["A"], True,
        )

    def test_not_installed(self, manager, ledger) -> None:
        with pytest.raises(NotInstalledError):
            manager.remove("A")
        assert ledger.history() == []

    def test_blocked_by_dependent(self, manager, publish, installed, ledger) -> None:
        publish("A", deps=["B"])
        publish("B")
        manager.install("A")
        before = len(ledger.history())

        with pytest.raises(DependentExistsError) as excinfo:
            manager.remove("B")

        assert excinfo.value.dependents == ["A"]
        assert "required by A" in str(excinfo.value)
        assert installed.contains("B")
        assert len(ledger.history()) == before

    def test_not_blocked_by_similar_name(self, manager, installed) -> None:
        installed.upsert(InstalledPackage(name="foo", version="1.0"))
        installed.upsert(InstalledPackage(name="app", version="1.0", dependencies=["foobar"]))
        manager.remove("foo")
        assert not installed.contains("foo")


# ===========================================================================
# Upgrade
# ===========================================================================


class TestUpgrade:
    def test_upgrades_to_newer(self, manager, publish, installed, ledger) -> None:
        publish("A", "1.0")
        manager.install("A")
        publish("A", "2.0")

        result = manager.upgrade("A")

        assert result.upgraded
        assert (result.installed_version, result.available_version) == ("1.0", "2.0")
        assert installed.get("A").version == "2.0"
        record = ledger.get(result.transaction_id)
        assert record.kind is TransactionKind.UPGRADE
        assert record.success is True

    def test_noop_when_current(self, manager, publish, installed, ledger) -> None:
        publish("A", "1.0")
        manager.install("A")
        before = installed.get("A")
        entries = len(ledger.history())

        result = manager.upgrade("A")

        assert not result.upgraded
        assert result.transaction_id is None
        assert installed.get("A") == before
        assert len(ledger.history()) == entries

    def test_noop_when_installed_is_newer_by_string(self, manager, installed, publish) -> None:
        publish("A", "10")
        installed.upsert(InstalledPackage(name="A", version="9"))
        assert not manager.upgrade("A").upgraded

    def test_not_installed(self, manager, publish) -> None:
        publish("A")
        with pytest.raises(NotInstalledError):
            manager.upgrade("A")

    def test_not_in_index(self, manager, installed) -> None:
        installed.upsert(InstalledPackage(name="A", version="1.0"))
        with pytest.raises(PackageNotFoundError):
            manager.upgrade("A")

    def test_failed_upgrade(self, manager, publish, installed, backend) -> None:
        publish("A", "1.0")
        manager.install("A")
        publish("A", "2.0")
        backend.fail.add("A")
        with pytest.raises(TransactionFailedError, match="upgrade failed"):
            manager.upgrade("A")
        assert installed.get("A").version == "1.0"


# ===========================================================================
# Rollback
# ===========================================================================


class TestRollback:
    def test_rollback_install_removes_dependents_first(self, manager, publish, installed, ledger) -> None:
        publish("A", deps=["B"])
        publish("B")
        tid = manager.install("A").transaction_id

        report = manager.rollback(tid)

        assert report.ok
        assert report.succeeded == ["A", "B"]
        assert installed.list() == []
        original = ledger.get(tid)
        assert original.success is True
        kinds = [r.kind for r in ledger.history()]
        assert kinds[:2] == [TransactionKind.REMOVE, TransactionKind.REMOVE]

    def test_rollback_remove_reinstalls(self, manager, publish, installed) -> None:
        publish("A")
        manager.install("A")
        tid = manager.remove("A")

        report = manager.rollback(tid)

        assert report.succeeded == ["A"]
        assert installed.contains("A")

    def test_failures_collected_not_raised(self, manager, publish, installed) -> None:
        publish("A", deps=["B"])
        publish("B")
        publish("C", deps=["B"])
        tid = manager.install("A").transaction_id
        manager.install("C")

        report = manager.rollback(tid)

        assert not report.ok
        assert report.succeeded == ["A"]
        assert "required by C" in report.failed["B"]
        assert installed.contains("B")

    def test_upgrade_cannot_be_rolled_back(self, manager, publish) -> None:
        publish("A", "1.0")
        manager.install("A")
        publish("A", "2.0")
        tid = manager.upgrade("A").transaction_id
        with pytest.raises(RollbackError):
            manager.rollback(tid)

    def test_unknown_transaction(self, manager) -> None:
        with pytest.raises(TransactionNotFoundError):
            manager.rollback(404)


# ===========================================================================
# Maintenance
# ===========================================================================


class TestMaintenance:
    def test_clean_empties_cache(self, manager, tmp_path) -> None:
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "a.tar").write_bytes(b"x")
        assert manager.clean() == 1

    def test_history_passthrough(self, manager, publish) -> None:
        publish("A")
        manager.install("A")
        assert [r.packages for r in manager.history(1)] == [["A"]]

    def test_close_disposes_owned_database(self, index, installed, ledger, backend) -> None:
        db = MagicMock()
        PackageManager(index, installed, ledger, backend, db=db).close()
        db.close.assert_called_once_with()

    def test_close_without_database_is_noop(self, manager) -> None:
        manager.close()
        assert manager.list_installed() == []
