"""Database helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.engine.interfaces import DBAPIConnection
from sqlalchemy.pool import ConnectionPoolEntry, StaticPool
from sqlmodel import Session, SQLModel

# Importing the table module registers every table on SQLModel.metadata.
from pkgledger.store import tables as _tables  # noqa: F401

logger = logging.getLogger(__name__)

MEMORY_URL = "sqlite://"

# Milliseconds SQLite waits on a locked database before raising.
BUSY_TIMEOUT_MS = 5000


def _on_connect(
    dbapi_connection: DBAPIConnection,
    connection_record: ConnectionPoolEntry,
) -> None:
    """Apply per-connection SQLite pragmas."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS};")
    finally:
        cursor.close()
    logger.debug("Configured SQLite connection (busy_timeout=%d)", BUSY_TIMEOUT_MS)


def create_db_engine(url: str = MEMORY_URL, *, echo: bool = False) -> Engine:
    """Create a SQLite engine for ``url``.

    In-memory URLs get a ``StaticPool`` so every session shares the one
    connection that holds the data.
    """
    if url in (MEMORY_URL, "sqlite:///:memory:"):
        engine = sa.create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = sa.create_engine(url, echo=echo)
    sa.event.listen(engine, "connect", _on_connect)
    return engine


class Database:
    """Owns the engine and hands out sessions.

    ``session()`` is for reads and single-statement writes;
    ``transaction()`` wraps a block in one all-or-nothing storage commit.
    """

    def __init__(self, url: str = MEMORY_URL, *, echo: bool = False) -> None:
        self.url = url
        self.engine = create_db_engine(url, echo=echo)
        SQLModel.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with Session(self.engine, expire_on_commit=False) as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits on exit or rolls back on error."""
        with Session(self.engine, expire_on_commit=False) as session:
            with session.begin():
                yield session

    def close(self) -> None:
        self.engine.dispose()
