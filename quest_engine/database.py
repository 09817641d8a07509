"""
Database engine, session factory and unit-of-work helper.
"""
import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from quest_engine.constants import DEFAULT_DATABASE_URL
from quest_engine.exceptions import TransientStorageException

logger = logging.getLogger("quest_engine.database")

# Errors meaning the database could not be reached, not that a statement was wrong
TRANSIENT_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)

SQLALCHEMY_DATABASE_URL = os.getenv("QUEST_ENGINE_DATABASE_URL", DEFAULT_DATABASE_URL)


def enable_sqlite_transactions(sqlite_engine: Engine) -> Engine:
    """
    Let SQLAlchemy issue BEGIN itself on SQLite connections.

    The pysqlite driver otherwise delays BEGIN until the first write, which
    makes a leading SAVEPOINT commit on release.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    enable_sqlite_transactions(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session that is always closed"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, operation: str = "transaction") -> Iterator[Session]:
    """
    Run a block as one unit of work.

    Commits when the block finishes, rolls back on any exception. Connection
    and pool failures are re-raised as TransientStorageException so callers can
    tell a retryable storage outage from a business rule rejection.

    Args:
        db: Database session
        operation: Name used in log lines and transient errors

    Yields:
        The same session
    """
    try:
        yield db
        db.commit()
    except TRANSIENT_ERRORS as e:
        db.rollback()
        logger.error(f"Transient storage failure during {operation}: {e}")
        raise TransientStorageException(operation, str(e)) from e
    except Exception:
        db.rollback()
        raise
