"""pkgledger: Transactional package management with a recoverable install ledger."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
