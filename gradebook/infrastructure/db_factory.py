"""
Database connection factory utilities for Gradebook Ingest.

Provides centralized management of PostgreSQL connection pools with proper
lifecycle management. The PoolManager singleton keeps one pool per DSN and
closes them all on application exit.

Connection acquisition retries transient failures using tenacity; once the
retries are exhausted the failure surfaces as ``StoreUnavailable`` so callers
can tell "backend down" apart from data problems.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gradebook.config import get_settings
from gradebook.errors import StoreUnavailable
from gradebook.utils.logging import get_logger

log = get_logger(__name__)

TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout)


class PoolManager:
    """
    Thread-safe singleton for managing database connection pools.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pools: Dict[str, ConnectionPool] = {}
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self,
        dsn: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> ConnectionPool:
        """
        Get or create the connection pool for ``dsn``.

        Parameters
        ----------
        dsn : str | None
            Connection string; defaults to the configured database.
        min_size : int | None
            Minimum number of idle connections to keep.
        max_size : int | None
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed pool instance. Connections run in autocommit mode;
            callers open explicit transactions for multi-statement work.
        """
        settings = get_settings()
        conninfo = dsn or settings.dsn
        with self._lock:
            pool = self._pools.get(conninfo)
            if pool is None:
                pool = ConnectionPool(
                    conninfo=conninfo,
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                    kwargs={"autocommit": True, "connect_timeout": settings.db_connect_timeout},
                    timeout=float(settings.db_connect_timeout),
                    open=True,
                )
                self._pools[conninfo] = pool
            return pool

    def close_all(self) -> None:
        """
        Close all managed pools and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
        for pool in pools:
            try:
                pool.close()
            except Exception:  # noqa: BLE001 - best-effort cleanup at shutdown
                log.warning("Failed to close connection pool", exc_info=True)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)
def _acquire(pool: ConnectionPool) -> Connection:
    return pool.getconn()


@contextmanager
def pooled_connection(pool: ConnectionPool) -> Generator[Connection, None, None]:
    """
    Borrow a connection from ``pool``, retrying transient failures.

    Connection-level errors raised while the connection is in use are also
    reported as ``StoreUnavailable``.

    Example
    -------
        with pooled_connection(pool) as conn:
            with conn.transaction():
                conn.execute("SELECT 1")
    """
    try:
        conn = _acquire(pool)
    except TRANSIENT_ERRORS as exc:
        log.error("Database unreachable", extra={"error": str(exc)})
        raise StoreUnavailable(
            "Database not available. Please ensure PostgreSQL is running."
        ) from exc

    try:
        yield conn
    except TRANSIENT_ERRORS as exc:
        log.error("Database connection lost", extra={"error": str(exc)})
        raise StoreUnavailable(f"Database connection lost: {exc}") from exc
    finally:
        pool.putconn(conn)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated autocommit connection with automatic retry.

    Use this for one-off maintenance work such as schema creation. Prefer the
    pool for request handling.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    return psycopg.connect(
        dsn or settings.dsn, autocommit=True, connect_timeout=settings.db_connect_timeout
    )


def get_pool(dsn: Optional[str] = None) -> ConnectionPool:
    """Get or create the pool for ``dsn`` via PoolManager."""
    return PoolManager().get_pool(dsn)


__all__ = [
    "PoolManager",
    "TRANSIENT_ERRORS",
    "get_pool",
    "get_sync_connection",
    "pooled_connection",
]
