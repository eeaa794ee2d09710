"""Conflict checking for a candidate install set.

Conflicts are directional. Only a candidate's own declared conflict list is
read, so ``A`` declaring a conflict with ``B`` blocks installing ``A`` while
``B`` is present, but not the reverse unless ``B`` declares it too.

The check stops at the first violation. Candidates are visited in the order
the caller gives, and each candidate's conflict list in declared order. This
is not an exhaustive conflict report.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pkgledger.exceptions import ConflictError, PackageNotFoundError

if TYPE_CHECKING:
    from pkgledger.core.index import RepositoryIndex
    from pkgledger.store.installed import InstalledSetStore

logger = logging.getLogger(__name__)


class ConflictChecker:
    """Detects declared mutual exclusions before anything is applied.

    Args:
        index: Repository index supplying each candidate's latest record.
        installed: Installed-set store, read only.
    """

    def __init__(self, index: RepositoryIndex, installed: InstalledSetStore) -> None:
        self._index = index
        self._installed = installed

    def check(self, candidates: Sequence[str]) -> None:
        """Raise on the first conflict found among ``candidates``.

        For each candidate, a declared conflict name is a violation if it is
        (a) another member of ``candidates``, or (b) currently installed.
        Candidates unknown to the index have no declared conflicts.

        Raises:
            ConflictError: Naming the candidate and the conflicting package.
        """
        members = set(candidates)
        for candidate in candidates:
            try:
                record = self._index.lookup_latest(candidate)
            except PackageNotFoundError:
                logger.debug("No index record for %s; no conflicts to check", candidate)
                continue

            for other in record.conflicts:
                if other == candidate:
                    continue
                if other in members:
                    raise ConflictError(candidate, other, installed=False)
                if self._installed.contains(other):
                    raise ConflictError(candidate, other, installed=True)
