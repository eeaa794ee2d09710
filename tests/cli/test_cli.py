"""Tests for the ``pkgledger`` CLI commands.

Each test runs against a fresh installation root under ``tmp_path``; the
repository fetch is mocked, so no real HTTP calls are made.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner
from sqlalchemy.exc import OperationalError

from pkgledger.cli.main import cli
from pkgledger.core.manager import PackageManager

MAIN_PACKAGES_URL = "https://repo.example.com/main/packages.json"

PACKAGES: list[dict[str, Any]] = [
    {"name": "nginx", "version": "1.24", "description": "HTTP server", "dependencies": ["openssl"]},
    {"name": "openssl", "version": "3.0", "description": "TLS toolkit"},
    {"name": "apache", "version": "2.4", "description": "HTTP server", "conflicts": ["nginx"]},
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "root"


def _invoke(runner: CliRunner, root: Path, *args: str) -> Any:
    return runner.invoke(cli, ["--root", str(root), *args])


def _patch_fetch_json(packages: list[dict[str, Any]] | None = None) -> Any:
    async def fake(url: str, **_: Any) -> Any:
        return packages if url == MAIN_PACKAGES_URL else {}

    return patch("pkgledger.core.index.fetch_json", new=AsyncMock(side_effect=fake))


@pytest.fixture
def synced_root(runner: CliRunner, root: Path) -> Path:
    """An installation root whose index holds PACKAGES."""
    with _patch_fetch_json(PACKAGES):
        result = _invoke(runner, root, "update")
    assert result.exit_code == 0, result.output
    return root


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestGroup:
    def test_help_lists_commands_and_aliases(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("install", "remove", "rollback", "repo-add", "i", "r", "u", "s"):
            assert name in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_root_from_environment(self, runner: CliRunner, root: Path) -> None:
        result = runner.invoke(cli, ["list"], env={"PKGLEDGER_ROOT": str(root)})
        assert result.exit_code == 0
        assert (root / "var/lib/pkgledger/packages.db").exists()
        assert (root / "etc/pkgledger/repositories.json").exists()

    def test_corrupt_repository_file(self, runner: CliRunner, root: Path) -> None:
        repos = root / "etc/pkgledger/repositories.json"
        repos.parent.mkdir(parents=True)
        repos.write_text("{not json", encoding="utf-8")
        result = _invoke(runner, root, "list")
        assert result.exit_code == 1
        assert "Error: invalid repository configuration" in result.output
        assert "Traceback" not in result.output

    def test_unopenable_database(self, runner: CliRunner, root: Path) -> None:
        locked = OperationalError("PRAGMA busy_timeout", {}, Exception("database is locked"))
        with patch.object(PackageManager, "open", side_effect=locked):
            result = _invoke(runner, root, "list")
        assert result.exit_code == 1
        assert "Error: cannot open" in result.output
        assert "database is locked" in result.output


# ---------------------------------------------------------------------------
# Update / search
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_reports_counts(self, runner, root) -> None:
        with _patch_fetch_json(PACKAGES):
            result = _invoke(runner, root, "update")
        assert result.exit_code == 0
        assert "main: 3 packages" in result.output

    def test_unreachable_repository_reported(self, runner, root) -> None:
        with _patch_fetch_json(None):
            result = _invoke(runner, root, "update")
        assert result.exit_code == 0
        assert "main" in result.output
        assert "no package list" in result.output

    def test_search(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "search", "HTTP")
        assert result.exit_code == 0
        assert "nginx" in result.output
        assert "apache" in result.output
        assert "openssl" not in result.output

    def test_search_alias_no_match(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "s", "http")
        assert result.exit_code == 0
        assert "No packages matching" in result.output


# ---------------------------------------------------------------------------
# Install / remove / upgrade / list
# ---------------------------------------------------------------------------


class TestPackageCommands:
    def test_install_and_list(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "install", "nginx")
        assert result.exit_code == 0, result.output
        assert "openssl, nginx" in result.output

        listing = _invoke(runner, synced_root, "list")
        assert "nginx" in listing.output
        assert "openssl" in listing.output

    def test_install_alias(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "i", "openssl")
        assert result.exit_code == 0

    def test_install_unknown(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "install", "ghost")
        assert result.exit_code == 1
        assert "Error: package ghost not found" in result.output

    def test_install_conflict(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "nginx")
        result = _invoke(runner, synced_root, "install", "apache")
        assert result.exit_code == 1
        assert "conflicts with installed package nginx" in result.output

    def test_remove_blocked(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "nginx")
        result = _invoke(runner, synced_root, "remove", "openssl")
        assert result.exit_code == 1
        assert "required by nginx" in result.output

    def test_remove(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "openssl")
        result = _invoke(runner, synced_root, "r", "openssl")
        assert result.exit_code == 0
        assert "Removed" in result.output

    def test_upgrade_already_latest(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "openssl")
        result = _invoke(runner, synced_root, "u", "openssl")
        assert result.exit_code == 0
        assert "already at the latest version" in result.output

    def test_upgrade_not_installed(self, runner, synced_root) -> None:
        result = _invoke(runner, synced_root, "upgrade", "nginx")
        assert result.exit_code == 1
        assert "is not installed" in result.output

    def test_list_empty(self, runner, root) -> None:
        result = _invoke(runner, root, "list")
        assert result.exit_code == 0
        assert "No packages installed" in result.output


# ---------------------------------------------------------------------------
# History / rollback
# ---------------------------------------------------------------------------


class TestHistoryCommands:
    def test_history_shows_transactions(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "nginx")
        result = _invoke(runner, synced_root, "history", "--limit", "5")
        assert result.exit_code == 0
        assert "install" in result.output
        assert "ok" in result.output

    def test_rollback(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "nginx")
        result = _invoke(runner, synced_root, "rollback", "1")
        assert result.exit_code == 0, result.output
        assert "Rolled back transaction 1" in result.output

        listing = _invoke(runner, synced_root, "list")
        assert "No packages installed" in listing.output

    def test_rollback_unknown(self, runner, root) -> None:
        result = _invoke(runner, root, "rollback", "99")
        assert result.exit_code == 1
        assert "transaction 99 not found" in result.output

    def test_rollback_with_failures_exits_nonzero(self, runner, synced_root) -> None:
        _invoke(runner, synced_root, "install", "openssl")
        _invoke(runner, synced_root, "install", "nginx")
        result = _invoke(runner, synced_root, "rollback", "1")
        assert result.exit_code == 1
        assert "failed" in result.output


# ---------------------------------------------------------------------------
# Repositories / cache
# ---------------------------------------------------------------------------


class TestRepositoryCommands:
    def test_repo_add_list_remove(self, runner, root) -> None:
        result = _invoke(runner, root, "repo-add", "extra", "https://repo.test/extra", "5", "true")
        assert result.exit_code == 0, result.output

        saved = json.loads((root / "etc/pkgledger/repositories.json").read_text())
        extra = next(r for r in saved if r["name"] == "extra")
        assert extra == {
            "name": "extra", "url": "https://repo.test/extra",
            "priority": 5, "enabled": True, "trusted": True,
        }

        listing = _invoke(runner, root, "repo-list")
        assert "extra" in listing.output
        assert "main" in listing.output

        removed = _invoke(runner, root, "repo-remove", "extra")
        assert removed.exit_code == 0
        saved = json.loads((root / "etc/pkgledger/repositories.json").read_text())
        assert [r["name"] for r in saved] == ["main"]

    def test_repo_remove_unknown(self, runner, root) -> None:
        result = _invoke(runner, root, "repo-remove", "nope")
        assert result.exit_code == 1
        assert "repository nope not found" in result.output

    def test_clean(self, runner, root) -> None:
        cache = root / "var/cache/pkgledger"
        cache.mkdir(parents=True)
        (cache / "a.tar").write_bytes(b"x")
        result = _invoke(runner, root, "clean")
        assert result.exit_code == 0
        assert "Removed 1 cached files" in result.output
