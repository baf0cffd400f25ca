"""SQLite connection and initialization utilities."""

import logging
import sqlite3
import threading
from pathlib import Path

from .schema import get_init_schema, SCHEMA_VERSION
from ..core.exceptions import ConstraintError, StorageError

logger = logging.getLogger(__name__)


def _wrap(error):
    # keep SQL text out of the message, it may carry key names
    if isinstance(error, sqlite3.IntegrityError):
        return ConstraintError(f"Constraint violated: {error}")
    return StorageError(f"Database operation failed: {error}")


class DatabaseConnection:
    """Manage SQLite connections and schema init.

    Connections are thread-local; instances are passed explicitly to the
    models and services that need them, there is no process-wide handle.
    """

    __slots__ = ("db_path", "_local", "_lock", "_initialized")

    def __init__(self, db_path="./datavault.db"):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

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

                conn.commit()
                self._initialized = True
                logger.info("Database ready at %s (schema v%d)", self.db_path, SCHEMA_VERSION)

            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        return self._local.connection

    def get_cursor_context(self):
        """Return a context manager for a SQLite cursor."""
        return CursorContext(self._get_connection())

    def transaction(self):
        """Return a transaction context manager (BEGIN/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def execute(self, query, params=None):
        """Execute a single SQL statement and return the number of affected rows."""
        with self.get_cursor_context() as cursor:
            try:
                cursor.execute(query, params or ())
            except sqlite3.Error as e:
                raise _wrap(e) from e
            return cursor.rowcount

    def insert(self, query, params=None):
        """Execute an INSERT and return the new row id."""
        with self.get_cursor_context() as cursor:
            try:
                cursor.execute(query, params or ())
            except sqlite3.Error as e:
                raise _wrap(e) from e
            return cursor.lastrowid

    def fetch_one(self, query, params=None):
        """Fetch a single row as a dict or None."""
        with self.get_cursor_context() as cursor:
            try:
                cursor.execute(query, params or ())
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise _wrap(e) from e
            return dict(row) if row else None

    def fetch_all(self, query, params=None):
        """Fetch all rows as a list of dicts."""
        with self.get_cursor_context() as cursor:
            try:
                cursor.execute(query, params or ())
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                raise _wrap(e) from e
            return [dict(row) for row in rows]

    def get_version(self):
        """Return current schema version number."""
        try:
            result = self.fetch_one("SELECT MAX(version) as version FROM schema_version")
            return result["version"] if result and result["version"] else 0
        except StorageError:
            return 0

    def close(self):
        """Close the thread-local connection if open."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


class CursorContext:
    """Context manager for SQLite cursor."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Create and return a cursor."""
        self.cursor = self.connection.cursor()
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the cursor."""
        if self.cursor:
            self.cursor.close()


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
