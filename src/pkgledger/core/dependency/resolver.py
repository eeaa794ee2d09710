"""Dependency closure computation.

The resolver walks the dependency graph depth-first, starting from a root
package name, and collects every name that must be present for the root to
be satisfied. It does no version-range solving: each name resolves to its
latest record in the repository index.

The traversal rules:

1. A name already in the installed set is collected and its dependencies are
   not walked. Installed packages are assumed to be satisfied already.
2. Any other name is looked up in the index. A missing name aborts the whole
   resolution with ``PackageNotFoundError``, and no partial result is
   returned.
3. A name is marked visited before its dependencies are walked, so a cycle
   that leads back to it stops without raising an error.

The walk uses an explicit stack, so very deep graphs cannot hit the
interpreter's recursion limit. ``plan`` returns names in dependency-first
(post-order) order. That order is the deterministic application order the
orchestrator uses.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgledger.core.index import RepositoryIndex
    from pkgledger.store.installed import InstalledSetStore

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Computes the closure of packages required by a root package.

    Resolution never writes to either store.

    Args:
        index: Repository index used for latest-record lookups.
        installed: Installed-set store used for the short-circuit rule.
    """

    def __init__(self, index: RepositoryIndex, installed: InstalledSetStore) -> None:
        self._index = index
        self._installed = installed

    def resolve(self, root: str) -> set[str]:
        """Return the set of names required to satisfy ``root``.

        Raises:
            PackageNotFoundError: If ``root`` or any transitive dependency is
                neither installed nor present in the index.
        """
        return set(self.plan(root))

    def plan(self, root: str) -> list[str]:
        """Resolve ``root`` and return the closure in dependency-first order.

        Every name appears once. A dependency comes before the packages that
        need it, except where a cycle makes that impossible; there the name
        reached first is placed last.

        Raises:
            PackageNotFoundError: As for ``resolve``.
        """
        visited: set[str] = set()
        order: list[str] = []
        stack: list[tuple[str, Iterator[str]]] = []

        def enter(name: str) -> None:
            visited.add(name)
            if self._installed.contains(name):
                logger.debug("%s already installed; not descending", name)
                order.append(name)
                return
            record = self._index.lookup_latest(name)
            stack.append((name, iter(record.dependencies)))

        enter(root)
        while stack:
            name, pending = stack[-1]
            for dep in pending:
                if dep not in visited:
                    enter(dep)
                    break
            else:
                stack.pop()
                order.append(name)

        logger.debug("Resolved %s -> %s", root, order)
        return order
