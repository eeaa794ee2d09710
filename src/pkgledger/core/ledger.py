"""Transaction Log: the append-only ledger of install/remove/upgrade attempts.

Every operation that touches the installed set opens a ledger entry first.
The entry starts pending, and it is closed exactly once, after every package
application in the operation has been attempted. Entries are never deleted.
Rollback writes new entries instead of rewriting old ones.

Closing an entry is best-effort. A storage failure in ``end`` is logged and
swallowed, so it never masks the true result of the operation. A process
killed mid-operation leaves its entry pending forever.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import cast

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from pkgledger.core.models import TransactionKind, TransactionRecord
from pkgledger.exceptions import TransactionNotFoundError
from pkgledger.store.database import Database
from pkgledger.store.tables import TransactionRow, utcnow

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


def _to_record(row: TransactionRow) -> TransactionRecord:
    return TransactionRecord(
        id=row.id or 0,
        kind=TransactionKind(row.type),
        packages=list(row.packages or []),
        timestamp=row.timestamp,
        success=row.success,
        finished_at=row.finished_at,
    )


class TransactionLog:
    """Ledger of operations stored in the ``transactions`` relation."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def begin(self, kind: TransactionKind | str, names: Sequence[str]) -> int:
        """Insert a pending entry and return its store-assigned id."""
        kind = TransactionKind(kind)
        row = TransactionRow(type=kind.value, packages=list(names), success=False)
        with self._db.transaction() as session:
            session.add(row)
            session.flush()
            transaction_id = cast(int, row.id)
        logger.debug("Opened transaction %d (%s %s)", transaction_id, kind.value, list(names))
        return transaction_id

    def end(self, transaction_id: int, success: bool) -> None:
        """Close an entry with its final success flag.

        Best-effort: failures are logged, never raised.
        """
        try:
            with self._db.transaction() as session:
                row = session.get(TransactionRow, transaction_id)
                if row is None:
                    logger.error("Cannot close transaction %s: no such entry", transaction_id)
                    return
                row.success = success
                row.finished_at = utcnow()
        except SQLAlchemyError:
            logger.error("Failed to record outcome of transaction %s", transaction_id, exc_info=True)
            return
        logger.debug("Closed transaction %s (success=%s)", transaction_id, success)

    def history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[TransactionRecord]:
        """Return at most ``limit`` entries, newest first."""
        if limit <= 0:
            return []
        with self._db.session() as session:
            rows = session.exec(
                select(TransactionRow)
                .order_by(col(TransactionRow.timestamp).desc(), col(TransactionRow.id).desc())
                .limit(limit)
            ).all()
            return [_to_record(row) for row in rows]

    def get(self, transaction_id: int) -> TransactionRecord:
        """Return one entry.

        Raises:
            TransactionNotFoundError: If ``transaction_id`` is unknown.
        """
        with self._db.session() as session:
            row = session.get(TransactionRow, transaction_id)
            if row is None:
                raise TransactionNotFoundError(transaction_id)
            return _to_record(row)
