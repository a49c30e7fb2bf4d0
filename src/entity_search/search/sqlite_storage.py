"""SQLite-based index store with FTS5 relevance scoring.

The store keeps one plain table holding ``IndexRecord`` rows and an
external-content FTS5 table over its ``content`` column:
- UNIQUE (model, field, foreign_id) backs exact lookup and idempotent upsert
- Triggers keep the FTS5 table in sync on insert, update and delete
- WAL mode with NORMAL synchronous for concurrent readers during writes
- Thread-local connections in autocommit mode; writes use explicit
  ``BEGIN IMMEDIATE`` transactions
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
import threading

from entity_search.domain.errors import StoreError
from entity_search.search.sqlite_pragmas import apply_connection_pragmas, apply_schema_pragmas


logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

INDEX_TABLE = "search_index"
FTS_TABLE = "search_index_fts"

_SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {INDEX_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        model TEXT NOT NULL,
        field TEXT NOT NULL,
        foreign_id INTEGER NOT NULL,
        content TEXT NOT NULL,
        UNIQUE (model, field, foreign_id)
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_{INDEX_TABLE}_foreign ON {INDEX_TABLE} (model, foreign_id)",
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        content,
        content='{INDEX_TABLE}',
        content_rowid='id',
        tokenize='unicode61 remove_diacritics 2'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {INDEX_TABLE}_ai AFTER INSERT ON {INDEX_TABLE} BEGIN
        INSERT INTO {FTS_TABLE}(rowid, content) VALUES (new.id, new.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {INDEX_TABLE}_ad AFTER DELETE ON {INDEX_TABLE} BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, content) VALUES ('delete', old.id, old.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {INDEX_TABLE}_au AFTER UPDATE OF content ON {INDEX_TABLE} BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, content) VALUES ('delete', old.id, old.content);
        INSERT INTO {FTS_TABLE}(rowid, content) VALUES (new.id, new.content);
    END
    """,
)


class SQLiteConnectionPool:
    """Thread-safe connection pool with thread-local connections."""

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int | None = 30000):
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._local = threading.local()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a thread-local connection."""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._local.connection = self._create_connection()

        yield self._local.connection

    def _create_connection(self) -> sqlite3.Connection:
        """Create an autocommit connection with the store's PRAGMAs applied."""
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
            apply_connection_pragmas(conn, busy_timeout_ms=self.busy_timeout_ms)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open index store {self.db_path}: {e}") from e
        return conn

    def close_all(self) -> None:
        """Close thread-local connection."""
        if hasattr(self._local, "connection") and self._local.connection is not None:
            try:
                self._local.connection.close()
            except sqlite3.Error:
                pass  # Ignore errors during cleanup
            self._local.connection = None


class SqliteIndexStore:
    """SQLite store backing the search side table.

    Exposes read and transactional write scopes; every ``sqlite3.Error``
    raised inside them surfaces as ``StoreError``.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int | None = 30000) -> None:
        if str(db_path) != MEMORY_DATABASE:
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._pool = SQLiteConnectionPool(db_path, busy_timeout_ms=busy_timeout_ms)
        self._initialized = False
        self._init_lock = threading.Lock()

    def initialize(self) -> None:
        """Create the index table, FTS5 table and sync triggers if missing."""
        with self._init_lock:
            if self._initialized:
                return
            with self._pool.get_connection() as conn:
                try:
                    apply_schema_pragmas(conn)
                    conn.execute("BEGIN IMMEDIATE")
                    for statement in _SCHEMA_STATEMENTS:
                        conn.execute(statement)
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise StoreError(f"Failed to initialize index store schema: {e}") from e
            self._initialized = True
            logger.debug("Index store ready at %s", self.db_path)

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for read-only statements."""
        self.initialize()
        with self._pool.get_connection() as conn:
            try:
                yield conn
            except sqlite3.Error as e:
                raise StoreError(f"Index store query failed: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a write transaction.

        Commits on success and rolls back on any exception.
        """
        self.initialize()
        with self._pool.get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreError(f"Failed to start index store transaction: {e}") from e
            try:
                yield conn
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StoreError(f"Index store write failed: {e}") from e
            except BaseException:
                self._rollback(conn)
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StoreError(f"Failed to commit index store transaction: {e}") from e

    def _rollback(self, conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as rollback_error:
            logger.warning("Failed to roll back index store transaction: %s", rollback_error)

    def close(self) -> None:
        """Close connection pool."""
        self._pool.close_all()
        if str(self.db_path) == MEMORY_DATABASE:
            # The schema lives in the closed connection
            self._initialized = False
