"""
Database configuration and session management.

Provides:
- Engine creation with dialect-specific configuration
- SessionLocal factory for creating database sessions
- transaction() context manager with isolation level, timeout and
  translation of transient database failures
- Database initialization utilities
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from carpool.config import get_settings
from carpool.exceptions import (
    SerializationFailureError,
    TransactionTimeoutError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

SERIALIZABLE = "SERIALIZABLE"

# SQLSTATE codes reported by PostgreSQL drivers
_SERIALIZATION_FAILURE_CODES = {"40001", "40P01"}
_TIMEOUT_CODES = {"57014", "55P03"}

SessionFactory = Callable[[], Session]


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints in SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(
    database_url: str,
    echo: bool = False,
    timeout_seconds: float = 5.0,
) -> Engine:
    """
    Create an engine configured for the target database.

    SQLite: driver busy-timeout bounds how long a writer waits for the lock,
    in-memory databases share a single connection, foreign keys are enforced.
    PostgreSQL: pooled connections with pre-ping.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log SQL statements
        timeout_seconds: Lock wait bound for SQLite connections

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    if "sqlite" in database_url.lower():
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url
        options = {}
        if in_memory:
            options["poolclass"] = StaticPool

        sqlite_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
            echo=echo,
            **options,
        )
        event.listen(sqlite_engine, "connect", _set_sqlite_pragma)
        return sqlite_engine

    return create_engine(
        database_url,
        pool_size=5,  # Maximum number of connections in pool
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        echo=echo,
    )


def create_session_factory(bind: Engine) -> sessionmaker:
    """
    Build a session factory for an engine.

    Sessions do not autoflush and keep loaded attributes after commit, so
    records built inside a transaction stay readable after it closes.
    """
    return sessionmaker(
        bind=bind,
        autoflush=False,
        expire_on_commit=False,
    )


# Get settings
settings = get_settings()

# Validate production configuration
if settings.is_production:
    settings.validate_production_config()

engine = create_db_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    timeout_seconds=settings.transaction_timeout_seconds,
)

# Session factory
SessionLocal = create_session_factory(engine)


def translate_db_error(error: DBAPIError) -> Optional[TransientStoreError]:
    """
    Map a driver error to a retryable store error.

    Returns:
        The transient error to raise, or None if the error is not transient
    """
    original = error.orig
    code = getattr(original, "pgcode", None) or getattr(original, "sqlstate", None)

    if code in _SERIALIZATION_FAILURE_CODES:
        return SerializationFailureError(
            "Transaction could not be serialized with concurrent writers",
            original_error=error,
        )
    if code in _TIMEOUT_CODES:
        return TransactionTimeoutError(
            "Transaction exceeded its statement or lock timeout",
            original_error=error,
        )

    if isinstance(error, OperationalError):
        message = str(original).lower()
        if "database is locked" in message:
            return TransactionTimeoutError(
                "Timed out waiting for the database write lock",
                original_error=error,
            )
        if "database table is locked" in message:
            return SerializationFailureError(
                "Table locked by a concurrent transaction",
                original_error=error,
            )

    return None


def _begin(
    session: Session,
    isolation_level: Optional[str],
    timeout_seconds: Optional[float],
) -> None:
    """Open the transaction with the requested isolation and timeout."""
    execution_options = {"isolation_level": isolation_level} if isolation_level else None
    connection = session.connection(execution_options=execution_options)
    dialect = connection.dialect.name

    if dialect == "sqlite":
        # Single-writer lock taken up front; waits are bounded by the busy-timeout
        if isolation_level == SERIALIZABLE:
            connection.exec_driver_sql("BEGIN IMMEDIATE")
    elif dialect == "postgresql" and timeout_seconds:
        timeout_ms = int(timeout_seconds * 1000)
        connection.exec_driver_sql(f"SET LOCAL statement_timeout = {timeout_ms}")
        connection.exec_driver_sql(f"SET LOCAL lock_timeout = {timeout_ms}")


@contextmanager
def transaction(
    session_factory: Optional[SessionFactory] = None,
    isolation_level: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
) -> Generator[Session, None, None]:
    """
    Run a block inside a single database transaction.

    Commits when the block completes, rolls back on any exception. Driver
    errors caused by concurrent writers (serialization failures, deadlocks,
    lock or statement timeouts) are raised as TransientStoreError subclasses;
    every other error propagates unchanged.

    Usage:
        with transaction(SessionLocal, isolation_level=SERIALIZABLE) as session:
            slot = session.get(ScheduleSlot, slot_id)

    Args:
        session_factory: Factory producing sessions (defaults to SessionLocal)
        isolation_level: Optional isolation level, e.g. SERIALIZABLE
        timeout_seconds: Optional statement/lock timeout for the transaction

    Yields:
        Session: Session bound to the open transaction
    """
    factory = session_factory or SessionLocal
    session = factory()
    try:
        _begin(session, isolation_level, timeout_seconds)
        yield session
        session.commit()
    except DBAPIError as e:
        session.rollback()
        transient = translate_db_error(e)
        if transient is None:
            logger.error(f"Database error in transaction: {e}", exc_info=True)
            raise
        logger.warning(f"Transient database failure: {transient.message}")
        raise transient from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Initialize database by creating all tables.

    This is useful for development and testing. In production, use Alembic migrations.
    """
    from carpool.models.base import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully")


def drop_all_tables(bind: Optional[Engine] = None) -> None:
    """
    Drop all tables from the database.

    WARNING: This will delete all data. Use with caution.
    Primarily for testing and development.
    """
    from carpool.models.base import Base

    logger.warning("Dropping all database tables...")
    Base.metadata.drop_all(bind=bind or engine)
    logger.info("All database tables dropped")
