"""Installation paths and repository configuration.

``Settings`` derives every on-disk location from a single installation root.
``RepositoryConfig`` is the explicit, file-backed list of configured
repositories: it is loaded once, handed to the components that need it, and
re-saved after every mutation. There is no module-level repository list.

Repository file format (``<root>/etc/pkgledger/repositories.json``)::

    [
      {"name": "main", "url": "https://repo.example.com/main",
       "priority": 10, "enabled": true, "trusted": true}
    ]
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pkgledger.core.models import RepositoryDescriptor
from pkgledger.exceptions import RepositoryNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = RepositoryDescriptor(
    name="main",
    url="https://repo.example.com/main",
    priority=10,
    enabled=True,
    trusted=True,
)


# ---------------------------------------------------------------------------
# Settings: paths under the installation root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    """Filesystem layout rooted at ``root``.

    Attributes:
        root: Installation root ("/" for the live system).
    """

    root: Path

    @property
    def db_path(self) -> Path:
        return self.root / "var" / "lib" / "pkgledger" / "packages.db"

    @property
    def cache_dir(self) -> Path:
        return self.root / "var" / "cache" / "pkgledger"

    @property
    def repos_file(self) -> Path:
        return self.root / "etc" / "pkgledger" / "repositories.json"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"

    def ensure_dirs(self) -> None:
        """Create the state, cache and configuration directories."""
        for directory in (self.db_path.parent, self.cache_dir, self.repos_file.parent):
            directory.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# RepositoryConfig: persisted list of repositories
# ---------------------------------------------------------------------------


def _descriptor_from_dict(data: dict[str, Any]) -> RepositoryDescriptor:
    return RepositoryDescriptor(
        name=str(data["name"]),
        url=str(data["url"]),
        priority=int(data.get("priority", 0)),
        enabled=bool(data.get("enabled", True)),
        trusted=bool(data.get("trusted", False)),
    )


class RepositoryConfig:
    """Ordered, file-backed repository list.

    Every mutating call (``add``, ``remove``) writes the file before
    returning.
    """

    def __init__(
        self, path: Path, descriptors: list[RepositoryDescriptor] | None = None
    ) -> None:
        self.path = path
        self._repos: list[RepositoryDescriptor] = list(descriptors or [])

    @classmethod
    def load(cls, path: Path) -> RepositoryConfig:
        """Read the repository file, seeding the default repository if absent.

        Raises:
            json.JSONDecodeError: If the file exists but is not valid JSON.
        """
        if not path.exists():
            config = cls(path, [RepositoryDescriptor(**asdict(DEFAULT_REPOSITORY))])
            config.save()
            logger.info("Created default repository configuration at %s", path)
            return config

        data = json.loads(path.read_text(encoding="utf-8"))
        return cls(path, [_descriptor_from_dict(item) for item in data or []])

    def save(self) -> None:
        """Write the repository list to disk, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [asdict(repo) for repo in self._repos]
        self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    @property
    def descriptors(self) -> list[RepositoryDescriptor]:
        return list(self._repos)

    def enabled(self) -> list[RepositoryDescriptor]:
        return [repo for repo in self._repos if repo.enabled]

    def get(self, name: str) -> RepositoryDescriptor | None:
        for repo in self._repos:
            if repo.name == name:
                return repo
        return None

    def add(
        self, name: str, url: str, priority: int = 0, trusted: bool = False
    ) -> RepositoryDescriptor:
        """Add a repository, or update url/priority/trust of an existing one.

        An existing entry keeps its ``enabled`` flag and its position.
        """
        existing = self.get(name)
        if existing is not None:
            existing.url = url
            existing.priority = priority
            existing.trusted = trusted
            repo = existing
        else:
            repo = RepositoryDescriptor(
                name=name, url=url, priority=priority, enabled=True, trusted=trusted
            )
            self._repos.append(repo)
        self.save()
        return repo

    def remove(self, name: str) -> None:
        """Remove a repository by name.

        Raises:
            RepositoryNotFoundError: If no repository has that name.
        """
        repo = self.get(name)
        if repo is None:
            raise RepositoryNotFoundError(name)
        self._repos.remove(repo)
        self.save()
