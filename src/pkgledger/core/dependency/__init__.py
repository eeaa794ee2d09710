"""Dependency closure and conflict detection.

Two read-only components sit between the repository index and the
orchestrator:

- **DependencyResolver** computes the set of names a root package needs,
  short-circuiting at installed packages and terminating on cycles.
- **ConflictChecker** rejects a candidate set when any candidate's declared
  conflicts name another candidate or an installed package.

Neither component writes to a store.
"""

from pkgledger.core.dependency.conflicts import ConflictChecker
from pkgledger.core.dependency.resolver import DependencyResolver

__all__ = [
    "ConflictChecker",
    "DependencyResolver",
]
