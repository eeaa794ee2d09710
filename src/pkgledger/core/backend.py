"""Build backend boundary: turning a package record into an installable artifact.

The orchestrator treats artifact acquisition as an opaque step. It passes a
``PackageRecord`` in and gets back an ``Artifact`` (a file manifest), or an
``ApplyError``. Anything behind that boundary can change without touching
resolution or the ledger. That includes recipe parsing, phased builds, and
where files land on disk.

``CachingDownloadBackend`` is the default backend. It fetches the record's
URL into the package cache and checks the declared SHA-256 checksum.
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import urlparse

import httpx

from pkgledger.core.models import Artifact, PackageRecord
from pkgledger.exceptions import ApplyError
from pkgledger.registry.http_client import DEFAULT_TIMEOUT, download_file

logger = logging.getLogger(__name__)

_CHECKSUM_PREFIX = "sha256:"


def verify_checksum(path: Path, expected: str) -> None:
    """Compare the SHA-256 of ``path`` with ``expected``.

    ``expected`` may be bare hex or carry a ``sha256:`` prefix.

    Raises:
        ValueError: On mismatch.
    """
    if expected.startswith(_CHECKSUM_PREFIX):
        expected = expected[len(_CHECKSUM_PREFIX):]
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(64 * 1024), b""):
            digest.update(chunk)
    actual = digest.hexdigest()
    if actual != expected.lower():
        raise ValueError(f"checksum mismatch: expected {expected}, got {actual}")


def clean_cache(cache_dir: Path) -> int:
    """Delete every file under ``cache_dir``; return how many were removed."""
    if not cache_dir.exists():
        return 0
    removed = 0
    for path in sorted(cache_dir.rglob("*")):
        if path.is_file():
            path.unlink()
            removed += 1
    logger.debug("Removed %d cached files from %s", removed, cache_dir)
    return removed


class BuildBackend(ABC):
    """Produces a ready-to-install artifact for one package."""

    @abstractmethod
    def acquire(self, record: PackageRecord) -> Artifact:
        """Acquire the artifact for ``record``.

        Raises:
            ApplyError: If the artifact cannot be produced.
        """


class CachingDownloadBackend(BuildBackend):
    """Downloads artifacts into a local cache and verifies their checksum.

    Records without a URL produce an artifact with an empty manifest.

    Args:
        cache_dir: Directory downloaded artifacts are stored in.
        timeout: Per-download timeout in seconds.
    """

    def __init__(self, cache_dir: Path, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.cache_dir = cache_dir
        self.timeout = timeout

    def cache_path(self, record: PackageRecord) -> Path:
        basename = Path(urlparse(record.url).path).name or "artifact"
        return self.cache_dir / f"{record.name}-{record.version}-{basename}"

    def acquire(self, record: PackageRecord) -> Artifact:
        if not record.url:
            return Artifact(name=record.name, version=record.version)

        dest = self.cache_path(record)
        try:
            download_file(record.url, dest, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise ApplyError(record.name, f"download from {record.url} failed: {exc}") from exc

        if record.checksum:
            try:
                verify_checksum(dest, record.checksum)
            except ValueError as exc:
                dest.unlink(missing_ok=True)
                raise ApplyError(record.name, str(exc)) from exc

        return Artifact(name=record.name, version=record.version, files=[str(dest)])
