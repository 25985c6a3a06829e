"""Database engine, session scope and storage retry policy.

Production Pattern:
- One engine (connection pool) per process
- Automatic table creation via init_database()
- Every operation runs in its own session; it commits entirely or rolls back
- Operational failures (timeouts, dropped connections) surface as
  StorageUnavailableError, never as an empty result
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from doctors_portal.api.database_models import Base
from doctors_portal.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


# Bounded retry for read operations; writes are never retried blindly
retry_reads = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type(StorageUnavailableError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///") or ":memory:" in database_url


def server_connect_args(database_url: str, timeout: int) -> dict:
    """
    Connect and per-statement time limits for server databases.

    A statement running past ``timeout`` is cancelled by PostgreSQL and
    surfaces as an OperationalError.
    """
    if database_url.startswith("postgresql"):
        return {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }
    return {}


def create_storage_engine(database_url: str, timeout: int = 10) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite shares a single connection across threads so that
    every request sees the same database. File SQLite waits up to
    ``timeout`` seconds on a locked database. Server databases get a
    pre-pinged pool with a bounded checkout wait, plus connect and
    statement timeouts.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if _is_memory_sqlite(database_url):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=timeout,
        connect_args=server_connect_args(database_url, timeout),
    )


class Storage:
    """
    Thin wrapper around an engine and its session factory.

    Pattern: services receive a Storage and open one scope per operation.
    """

    def __init__(self, database_url: str, timeout: int = 10):
        self.database_url = database_url
        self.engine = create_storage_engine(database_url, timeout=timeout)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init_database(self) -> None:
        """Create all tables. Safe to call multiple times (idempotent)."""
        try:
            Base.metadata.create_all(self.engine)
        except (OperationalError, PoolTimeoutError) as e:
            raise StorageUnavailableError(f"Database initialization failed: {e}") from e

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Open a session scope.

        The caller commits; anything raised inside the scope rolls back.

        Raises:
            StorageUnavailableError: On operational or pool timeout errors
        """
        db = self.SessionLocal()
        try:
            yield db
        except (OperationalError, PoolTimeoutError) as e:
            db.rollback()
            logger.error(f"Storage operation failed: {e}")
            raise StorageUnavailableError("Storage temporarily unavailable") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()


# Global storage (initialized on first use)
_storage: Optional[Storage] = None


def get_storage(database_url: str, timeout: int = 10) -> Storage:
    """Get or create the process-wide Storage."""
    global _storage

    if _storage is None:
        _storage = Storage(database_url, timeout=timeout)

    return _storage


def close_storage() -> None:
    """
    Dispose of the global storage.

    Call this during application shutdown.
    """
    global _storage

    if _storage is not None:
        _storage.dispose()
        _storage = None
