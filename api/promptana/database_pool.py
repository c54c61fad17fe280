"""
Database Connection Pool Manager
Provides connection pooling, health checks and connection validation for PostgreSQL
"""

import threading
import time
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs

import psycopg2
from psycopg2 import pool, OperationalError, InterfaceError, DatabaseError
from psycopg2.extras import RealDictCursor

from promptana.config import database_config
from promptana.database_logger import DatabaseLogger

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ('localhost', '127.0.0.1', '::1')


class DatabasePoolManager:
    """
    Manages the PostgreSQL connection pool.

    Features:
    - Threaded connection pool with dict rows (RealDictCursor)
    - Periodic health checks
    - Dead connection replacement on checkout
    - Retry with exponential backoff when checking out a connection
    - TCP keepalive settings and SSL mode detection (local vs remote)
    - Pool statistics

    Only connection checkout is retried. Queries run by callers are not.
    """

    _instance = None
    _lock = threading.Lock()

    def __init__(
        self,
        database_url: str,
        min_conn: int = database_config.DB_POOL_MIN_CONN,
        max_conn: int = database_config.DB_POOL_MAX_CONN
    ):
        """
        Initialize the connection pool manager.

        Args:
            database_url: PostgreSQL connection URL
            min_conn: Minimum number of connections in pool
            max_conn: Maximum number of connections in pool
        """
        self.database_url = database_url
        self.min_conn = min_conn
        self.max_conn = max_conn
        self.pool: Optional[pool.ThreadedConnectionPool] = None
        self.last_health_check: Optional[datetime] = None
        self.health_check_interval = database_config.DB_HEALTH_CHECK_INTERVAL
        self.health_check_lock = threading.Lock()
        self.pool_stats = {
            'total_connections': 0,
            'active_connections': 0,
            'connection_errors': 0,
            'retry_attempts': 0,
            'health_check_count': 0,
            'last_error': None,
            'last_error_time': None
        }
        self._initialize_pool()

    def _normalize_database_url(self) -> str:
        """
        Normalize database URL: drop an invalid port, default the SSL mode.
        Returns a clean connection string.
        """
        parsed = urlparse(self.database_url)

        if parsed.netloc and '@' in parsed.netloc:
            auth, host_part = parsed.netloc.rsplit('@', 1)
            if ':' in host_part and not host_part.endswith(']'):
                host, port_str = host_part.rsplit(':', 1)
                try:
                    port_valid = 1 <= int(port_str) <= 65535
                except ValueError:
                    port_valid = False
                if not port_valid:
                    self.database_url = parsed._replace(netloc=f"{auth}@{host}").geturl()
                    parsed = urlparse(self.database_url)

        query_params = parse_qs(parsed.query)
        if 'sslmode' not in query_params:
            hostname = parsed.hostname or 'localhost'
            default_sslmode = 'disable' if hostname in LOCAL_HOSTS else 'require'
            separator = '&' if parsed.query else '?'
            self.database_url = f"{self.database_url}{separator}sslmode={default_sslmode}"

        return self.database_url

    def _get_connection_params(self) -> Dict[str, Any]:
        """Get connection parameters for psycopg2."""
        return {
            'dsn': self._normalize_database_url(),
            'cursor_factory': RealDictCursor,
            'connect_timeout': database_config.DB_CONNECT_TIMEOUT,
            # TCP keepalive settings for better connection stability
            'keepalives': 1,
            'keepalives_idle': 30,
            'keepalives_interval': 10,
            'keepalives_count': 3,
        }

    def _record_error(self, error: BaseException):
        self.pool_stats['connection_errors'] += 1
        self.pool_stats['last_error'] = str(error)
        self.pool_stats['last_error_time'] = datetime.now()

    def _initialize_pool(self):
        """Initialize the connection pool."""
        start_time = time.time()
        try:
            params = self._get_connection_params()
            self.pool = pool.ThreadedConnectionPool(self.min_conn, self.max_conn, **params)

            # Test the pool with a connection
            test_conn = self.pool.getconn()
            try:
                self._probe(test_conn)
            finally:
                self.pool.putconn(test_conn)

            duration_ms = (time.time() - start_time) * 1000
            logger.info("✅ Database connection pool initialized successfully")
            self.pool_stats['total_connections'] = self.max_conn
            self.last_health_check = datetime.now()

            DatabaseLogger.log_connection_attempt(self.database_url, success=True, duration_ms=duration_ms)
            DatabaseLogger.log_health_check("healthy", {
                "pool_size": self.max_conn,
                "initialization_time_ms": duration_ms
            })

        except psycopg2.Error as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"❌ Failed to initialize connection pool: {e}")
            self._record_error(e)

            DatabaseLogger.log_connection_attempt(
                self.database_url,
                success=False,
                error=str(e),
                duration_ms=duration_ms
            )
            DatabaseLogger.log_health_check("unhealthy", {
                "error_category": DatabaseLogger.categorize_error(e).get("category")
            }, str(e))

            raise ConnectionError(f"Failed to initialize database connection pool: {e}") from e

    @staticmethod
    def _probe(conn):
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        finally:
            cursor.close()

    def _health_check(self) -> bool:
        """
        Perform a health check on the connection pool.
        Returns True if healthy, False otherwise.
        """
        with self.health_check_lock:
            now = datetime.now()

            # Skip if health check was done recently
            if (self.last_health_check and
                    (now - self.last_health_check).total_seconds() < self.health_check_interval):
                return True

            if not self.pool:
                logger.warning("⚠️ Connection pool not initialized")
                return False

            try:
                conn = self.pool.getconn()
                try:
                    self._probe(conn)
                finally:
                    self.pool.putconn(conn)
            except psycopg2.Error as e:
                logger.error(f"❌ Health check failed: {e}")
                self._record_error(e)
                DatabaseLogger.log_error("health_check", str(e), DatabaseLogger.categorize_error(e), e)
                DatabaseLogger.log_health_check("unhealthy", {}, str(e))
                return False

            self.pool_stats['health_check_count'] += 1
            self.last_health_check = now
            return True

    def _checkout(self):
        """Take a connection from the pool, replacing it if it is dead."""
        conn = self.pool.getconn()
        try:
            self._probe(conn)
        except (OperationalError, InterfaceError, DatabaseError):
            # Connection is dead, remove it from the pool and get a new one
            self.pool.putconn(conn, close=True)
            conn = self.pool.getconn()
        return conn

    def _release(self, conn):
        """Return a connection to the pool with no transaction left open."""
        try:
            if not conn.closed:
                conn.rollback()
            self.pool.putconn(conn)
        except psycopg2.Error as e:
            logger.error(f"Error returning connection to pool: {e}")
            self.pool.putconn(conn, close=True)
        finally:
            self.pool_stats['active_connections'] = max(0, self.pool_stats['active_connections'] - 1)

    @contextmanager
    def get_connection(self, retries: int = 3, backoff_factor: float = 1.5):
        """
        Get a connection from the pool.

        Args:
            retries: Number of checkout attempts
            backoff_factor: Exponential backoff multiplier between attempts

        Yields:
            psycopg2 connection object (RealDictCursor rows)

        Raises:
            ConnectionError: If every checkout attempt fails
        """
        if not self.pool:
            raise ConnectionError("Connection pool not initialized")

        self._health_check()

        conn = None
        last_exception = None
        wait_time = 0.5

        for attempt in range(retries):
            try:
                conn = self._checkout()
                break
            except psycopg2.Error as e:
                last_exception = e
                self._record_error(e)
                if attempt < retries - 1:
                    logger.warning(
                        f"⚠️ Connection attempt {attempt + 1} failed, retrying in {wait_time:.2f}s: {e}"
                    )
                    time.sleep(wait_time)
                    wait_time *= backoff_factor
                    self.pool_stats['retry_attempts'] += 1

        if conn is None:
            logger.error(f"❌ All {retries} connection attempts failed")
            DatabaseLogger.log_error(
                "get_connection",
                str(last_exception),
                DatabaseLogger.categorize_error(last_exception) if last_exception else {},
                last_exception
            )
            raise ConnectionError(
                f"Failed to get database connection after {retries} attempts: {last_exception}"
            ) from last_exception

        self.pool_stats['active_connections'] += 1
        try:
            yield conn
        finally:
            self._release(conn)

    def get_stats(self) -> Dict[str, Any]:
        """Get pool statistics."""
        stats = self.pool_stats.copy()
        stats['pool_initialized'] = self.pool is not None
        stats['last_health_check'] = self.last_health_check.isoformat() if self.last_health_check else None
        stats['health_check_interval'] = self.health_check_interval
        stats['min_connections'] = self.min_conn
        stats['max_connections'] = self.max_conn
        return stats

    def close_all(self):
        """Close all connections in the pool."""
        if self.pool:
            try:
                self.pool.closeall()
                logger.info("✅ All database connections closed")
            except psycopg2.Error as e:
                logger.error(f"Error closing connection pool: {e}")
            finally:
                self.pool = None

    @classmethod
    def get_instance(cls, database_url: Optional[str] = None) -> 'DatabasePoolManager':
        """
        Get or create a singleton instance of the pool manager.

        Args:
            database_url: Database URL (falls back to DATABASE_URL on first call)
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls(database_config.get_database_url(database_url))
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset the singleton instance (useful for testing)."""
        with cls._lock:
            if cls._instance:
                cls._instance.close_all()
            cls._instance = None
