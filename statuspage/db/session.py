"""
Database Session Management Module
==================================

Responsible for:
- Creating database engine with backend-appropriate settings
- Managing session lifecycle
- Providing dependency for FastAPI routes
- Running a unit of work as one transaction and mapping driver
  failures onto the application's exception taxonomy
"""

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError

from statuspage.core.config import settings
from statuspage.core.exceptions import (
    ConflictError,
    StaleWriteError,
    StatusPageError,
    StorageError,
    StorageTimeoutError,
)
from statuspage.core.logging import get_logger

# Initialize logger
logger = get_logger(__name__)


# ==========================
# Database Engine
# ==========================

def build_engine(url: str) -> Engine:
    """
    Create an engine for ``url``.

    SQLite gets a thread-agnostic connection and enforced foreign keys;
    server databases get a validated connection pool.
    """
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(sqlite_engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,  # Validate connections before use
        echo=settings.DEBUG,
        connect_args={
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
            "application_name": "statuspage-backend",
        },
    )


engine = build_engine(settings.DATABASE_URL)


# ==========================
# Session Factory
# ==========================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Committed entities stay readable for broadcast
)


# ==========================
# Dependency for FastAPI
# ==========================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Ensures:
    - Session is opened per request
    - Session is properly closed after request completes
    - Transactions are rolled back on error

    Yields:
        SQLAlchemy Session object
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ==========================
# Unit of Work
# ==========================

def is_foreign_key_violation(error: IntegrityError) -> bool:
    """True for a missing referenced row (Postgres SQLSTATE 23503 or SQLite's message)."""
    if getattr(error.orig, "pgcode", None) == "23503":
        return True
    return "foreign key" in str(error.orig).lower()


@contextmanager
def storage_errors(db: Session, resource: str = "Resource") -> Iterator[Session]:
    """
    Roll back and translate driver failures raised inside the block.

    Used around reads that check out a connection before a write, so pool
    timeouts and outages surface as retryable ``StorageError`` there too.
    """
    try:
        yield db
    except StatusPageError:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        logger.warning("stale_write_rejected", resource=resource, error=str(e))
        raise StaleWriteError(resource) from e
    except IntegrityError as e:
        db.rollback()
        if is_foreign_key_violation(e):
            logger.warning("foreign_key_violation", resource=resource, error=str(e.orig))
            raise ConflictError(
                f"{resource} references a record that does not exist",
                details={"resource": resource, "constraint": "foreign_key"},
            ) from e
        logger.warning("integrity_violation", resource=resource, error=str(e.orig))
        raise ConflictError(
            f"{resource} conflicts with existing data",
            details={"resource": resource, "constraint": "unique"},
        ) from e
    except PoolTimeoutError as e:
        db.rollback()
        logger.error("storage_timeout", resource=resource, error=str(e))
        raise StorageTimeoutError() from e
    except (OperationalError, DBAPIError) as e:
        db.rollback()
        logger.error("storage_unavailable", resource=resource, error=str(e))
        raise StorageError(details={"resource": resource}) from e
    except Exception:
        db.rollback()
        raise


@contextmanager
def transaction(db: Session, resource: str = "Resource") -> Iterator[Session]:
    """
    Run the enclosed block as a single transaction.

    Commits when the block exits normally. On any failure the whole
    transaction is rolled back and driver errors are re-raised as
    ``ConflictError``, ``StaleWriteError`` or ``StorageError``.

    Usage:
        with transaction(db, "Incident"):
            db.add(incident)
    """
    with storage_errors(db, resource):
        yield db
        db.commit()


# ==========================
# Database Health Check
# ==========================

def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
