"""
db/database.py -- The process-wide database handle.

One Database is built in the FastAPI lifespan (or a test fixture) and passed
to every store that needs it. Nothing in the project creates an engine on its
own or reaches for a module-level connection.

Pool sizing:
  Non-SQLite URLs get a bounded QueuePool: pool_size connections, no overflow,
  and callers block for up to pool_timeout seconds when all of them are
  checked out. SQLite keeps SQLAlchemy's default pool for its URL type --
  QueuePool does not apply to in-memory databases, and the pool_* arguments
  would be rejected there.

Usage:
    database = Database("postgresql+psycopg://user:pw@host/db")
    database.create_all()
    with database.connect() as conn:
        ...
    database.close()
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from db.schema import metadata

logger = logging.getLogger("userauth.db")


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign key enforcement on every new SQLite connection.

    SQLite PRAGMAs are not inherited by new connections from the pool, and
    foreign_keys is off by default -- without it the tokens -> users cascade
    never fires.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


class Database:
    """Owns the SQLAlchemy engine and the schema for one database URL."""

    def __init__(self, url: str, pool_size: int = 5, pool_timeout: int = 30) -> None:
        self.url = url
        kwargs: dict = {}
        if url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool; the same connection
            # may be used from several threads.
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs.update(pool_size=pool_size, max_overflow=0, pool_timeout=pool_timeout, pool_pre_ping=True)
        self.engine: Engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)

    def create_all(self) -> None:
        """Create missing tables. Idempotent -- safe to call on every startup."""
        metadata.create_all(self.engine)

    def connect(self) -> Connection:
        return self.engine.connect()

    def ping(self) -> bool:
        """Return True if a trivial query succeeds. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
