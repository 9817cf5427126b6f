"""
Generic PostgreSQL connection management.
Shared by the metrics source.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any

import psycopg2
import structlog

logger = structlog.get_logger(__name__)


class PostgresConnection:
    """Base class for PostgreSQL connection management

    A single connection is shared by every caller; cursor usage is serialised
    with a lock because detectors query it from several worker threads.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        connect_timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.connect_timeout = connect_timeout
        self.connection = None
        self._lock = threading.Lock()
        self._connect()

    def _connect(self):
        """Establish connection to PostgreSQL"""
        try:
            self.connection = psycopg2.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                connect_timeout=self.connect_timeout,
            )
            logger.info(
                "PostgreSQL connection established",
                host=self.host,
                database=self.database,
            )
        except Exception as e:
            logger.error("Failed to connect to PostgreSQL", error=str(e))
            raise

    @contextmanager
    def get_cursor(self):
        """Context manager for database cursor with automatic commit/rollback"""
        with self._lock:
            cursor = self.connection.cursor()
            try:
                yield cursor
                self.connection.commit()
            except Exception as e:
                self.connection.rollback()
                logger.error("Database operation failed", error=str(e))
                raise
            finally:
                cursor.close()

    def fetch_all(self, query: str, params: Any = None) -> tuple[list[str], list[tuple]]:
        """Run a read query and return (column names, rows)"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params or {})
            columns = [desc[0] for desc in cursor.description]
            return columns, cursor.fetchall()

    def timed_round_trip(self, query: str = "SELECT 1") -> float:
        """Milliseconds taken by *query*, measured once the cursor is held

        Waiting for the shared connection is not part of the measurement.
        """
        with self.get_cursor() as cursor:
            start = time.perf_counter()
            cursor.execute(query)
            cursor.fetchone()
            return (time.perf_counter() - start) * 1000.0

    def check_health(self) -> bool:
        """Check if database connection is healthy"""
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1")
                return cursor.fetchone()[0] == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    def close(self):
        """Close database connection"""
        if self.connection:
            self.connection.close()
            logger.info("PostgreSQL connection closed")
