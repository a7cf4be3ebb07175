import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extras
from fastapi import Request
from psycopg2.pool import ThreadedConnectionPool

from farminvest import config
from farminvest.exceptions import DuplicateKeyError, PersistenceError

logger = logging.getLogger(__name__)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


def _translate(exc: psycopg2.Error, query: str) -> PersistenceError:
    if isinstance(exc, psycopg2.errors.UniqueViolation):
        constraint = exc.diag.constraint_name if exc.diag else None
        return DuplicateKeyError(str(exc).strip(), query=query, constraint=constraint)
    return PersistenceError(str(exc).strip() or exc.__class__.__name__, query=query)


class Database:
    """
    Bounded PostgreSQL connection pool with single-statement query helpers.

    psycopg2's ThreadedConnectionPool raises as soon as it is exhausted, so
    callers first take a slot from a semaphore sized to ``max_size`` and wait
    there (up to ``acquire_timeout`` seconds, or forever when it is None).

    The underlying pool is created lazily, so constructing a Database never
    touches the network and the service can start while PostgreSQL is down.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 0,
        max_size: int = 10,
        acquire_timeout: Optional[float] = 30.0,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.dsn = dsn
        self.min_size = min(min_size, max_size)
        self.max_size = max_size
        self.acquire_timeout = acquire_timeout
        self._slots = threading.BoundedSemaphore(max_size)
        self._pool: Optional[ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()

    # PUBLIC_INTERFACE
    @classmethod
    def from_env(cls) -> "Database":
        """Build a Database from the DB_* environment variables."""
        return cls(
            config.build_dsn(),
            min_size=config.pool_min_size(),
            max_size=config.pool_max_size(),
            acquire_timeout=config.pool_timeout(),
        )

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = ThreadedConnectionPool(
                        minconn=self.min_size,
                        maxconn=self.max_size,
                        dsn=self.dsn,
                    )
                except psycopg2.Error as exc:
                    raise PersistenceError(f"Could not create connection pool: {exc}".strip()) from exc
            return self._pool

    @contextmanager
    def _get_conn(self) -> Iterator[Any]:
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise PersistenceError(
                f"Timed out after {self.acquire_timeout}s waiting for a database connection"
            )
        try:
            pool = self._get_pool()
            try:
                conn = pool.getconn()
            except psycopg2.Error as exc:
                raise PersistenceError(f"Could not connect to database: {exc}".strip()) from exc
            try:
                yield conn
            finally:
                pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    def _run(
        self,
        query: str,
        params: Optional[Sequence[Any]],
        collect: Callable[[Any], Any],
        dict_rows: bool = True,
    ) -> Any:
        with self._get_conn() as conn:
            try:
                cursor = _dict_cursor(conn) if dict_rows else conn.cursor()
                with cursor as cur:
                    cur.execute(query, params or [])
                    result = collect(cur)
                conn.commit()
                return result
            except psycopg2.Error as exc:
                if not conn.closed:
                    conn.rollback()
                raise _translate(exc, query) from exc

    # PUBLIC_INTERFACE
    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        row = self._run(query, params, lambda cur: cur.fetchone())
        return dict(row) if row else None

    # PUBLIC_INTERFACE
    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all rows as dicts."""
        rows = self._run(query, params, lambda cur: cur.fetchall())
        return [dict(r) for r in rows]

    # PUBLIC_INTERFACE
    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
        return self._run(query, params, lambda cur: cur.rowcount, dict_rows=False)

    # PUBLIC_INTERFACE
    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        row = self._run(query, params, lambda cur: cur.fetchone())
        if not row:
            raise PersistenceError("Expected one row returned, got none.", query=query)
        return dict(row)

    # PUBLIC_INTERFACE
    def ping(self) -> None:
        """Run a trivial query; raises PersistenceError when the database is unreachable."""
        self.fetch_one("SELECT 1")

    # PUBLIC_INTERFACE
    def check_connection(self) -> bool:
        """Startup diagnostic. Logs the outcome and never raises."""
        try:
            self.ping()
        except PersistenceError as exc:
            logger.error("Database connection check failed: %s", exc.message)
            return False
        logger.info("Connected to database")
        return True

    # PUBLIC_INTERFACE
    def close(self) -> None:
        """Close every pooled connection."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("Database pool closed")


# PUBLIC_INTERFACE
def get_db(request: Request) -> Database:
    """Dependency returning the Database created at application startup."""
    return request.app.state.db
