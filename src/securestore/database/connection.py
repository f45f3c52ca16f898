"""SQLite connection and initialization utilities."""

import sqlite3
from pathlib import Path
import threading

from .schema import get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """Manage per-thread SQLite connections and schema init."""

    __slots__ = ("db_path", "_local", "_lock", "_initialized", "_connections")

    def __init__(self, db_path):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.RLock()
        self._initialized = False
        self._connections = []

    def initialize(self):
        """Initialize schema if not already initialized."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = self._get_connection()
                for statement in get_init_schema():
                    conn.execute(statement)
                self._initialized = True

            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            # RLock: reached from initialize() with the lock held
            with self._lock:
                self._connections.append(conn)

        return self._local.connection

    def get_transaction_context(self):
        """Return a transaction context manager (BEGIN/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def fetch_one(self, query, params=()):
        """Fetch a single row as a dict or None."""
        try:
            cursor = self._get_connection().execute(query, params)
            try:
                row = cursor.fetchone()
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
        return dict(row) if row else None

    def fetch_all(self, query, params=()):
        """Fetch all rows as a list of dicts."""
        try:
            cursor = self._get_connection().execute(query, params)
            try:
                rows = cursor.fetchall()
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
        return [dict(row) for row in rows]

    def close(self):
        """Close every connection opened through this object, on any thread."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()


class TransactionContext:
    """Context manager for transactions (BEGIN/COMMIT/ROLLBACK)."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Begin a transaction and return a cursor."""
        self.cursor = self.connection.cursor()
        self.cursor.execute("BEGIN")
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, rollback on error, then close cursor."""
        try:
            if exc_type is None:
                self.connection.commit()
            else:
                self.connection.rollback()
        finally:
            if self.cursor:
                self.cursor.close()
