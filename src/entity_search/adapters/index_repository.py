"""Index repository abstractions and the SQLite implementation.

The repository is the only writer of ``IndexRecord`` rows. Search goes through
``search`` with a compiled ``QuerySpec`` and never writes.
"""

from abc import ABC, abstractmethod
import logging
import sqlite3

from entity_search.domain.model import IndexRecord
from entity_search.domain.search import QuerySpec, SearchHit
from entity_search.observability.metrics import INDEX_WRITES
from entity_search.search.query_builder import compile_spec
from entity_search.search.sqlite_storage import INDEX_TABLE, SqliteIndexStore


logger = logging.getLogger(__name__)

_RECORD_COLUMNS = "id, model, field, foreign_id, content"


def _row_to_record(row: tuple) -> IndexRecord:
    record_id, model, field, foreign_id, content = row
    return IndexRecord(model=model, field=field, foreign_id=foreign_id, content=content, id=record_id)


class AbstractIndexRepository(ABC):
    """Abstract repository for the search side table.

    Implementations need exact lookup, transactional upsert, full-text
    relevance scoring, substring containment and grouped ordering.
    """

    @abstractmethod
    def find_existing(self, model: str, field: str, foreign_id: int) -> IndexRecord | None:
        """Exact-match lookup by (model, field, foreign_id)."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, model: str, foreign_id: int, field: str, content: str) -> IndexRecord | None:
        """Create or replace the record for (model, field, foreign_id).

        Args:
            model: Entity type identifier
            foreign_id: Identifier of the source record
            field: Source field name
            content: Normalized content; empty content deletes the record

        Returns:
            The stored record, or None when empty content removed it
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, model: str, foreign_id: int, field: str | None = None) -> int:
        """Delete one field record, or every record of a source record when field is None.

        Returns:
            Number of records removed
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self, model: str | None = None) -> int:
        """Delete every record of a model, or the whole index when model is None."""
        raise NotImplementedError

    @abstractmethod
    def search(self, spec: QuerySpec) -> list[SearchHit]:
        """Execute a query specification and return grouped, ordered hits."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Return record counts per model."""
        raise NotImplementedError

    def count(self, model: str | None = None) -> int:
        """Count records, optionally restricted to one model."""
        counts = self.stats()
        if model is None:
            return sum(counts.values())
        return counts.get(model, 0)


class SqliteIndexRepository(AbstractIndexRepository):
    """Repository implementation backed by ``SqliteIndexStore``."""

    def __init__(self, store: SqliteIndexStore):
        self.store = store

    def find_existing(self, model: str, field: str, foreign_id: int) -> IndexRecord | None:
        with self.store.read() as conn:
            row = conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM {INDEX_TABLE} WHERE model = ? AND field = ? AND foreign_id = ?",
                (model, field, foreign_id),
            ).fetchone()
        return _row_to_record(row) if row else None

    def upsert(self, model: str, foreign_id: int, field: str, content: str) -> IndexRecord | None:
        if not content or not content.strip():
            self.delete(model, foreign_id, field)
            return None

        with self.store.transaction() as conn:
            # RETURNING rows must be drained before COMMIT
            rows = conn.execute(
                f"INSERT INTO {INDEX_TABLE} (model, field, foreign_id, content) VALUES (?, ?, ?, ?) "
                "ON CONFLICT (model, field, foreign_id) DO UPDATE SET content = excluded.content "
                f"RETURNING {_RECORD_COLUMNS}",
                (model, field, foreign_id, content),
            ).fetchall()
        INDEX_WRITES.labels(operation="upsert").inc()
        logger.debug("Indexed %s#%s.%s (%d chars)", model, foreign_id, field, len(content))
        return _row_to_record(rows[0])

    def delete(self, model: str, foreign_id: int, field: str | None = None) -> int:
        with self.store.transaction() as conn:
            if field is None:
                cursor = conn.execute(
                    f"DELETE FROM {INDEX_TABLE} WHERE model = ? AND foreign_id = ?",
                    (model, foreign_id),
                )
            else:
                cursor = conn.execute(
                    f"DELETE FROM {INDEX_TABLE} WHERE model = ? AND field = ? AND foreign_id = ?",
                    (model, field, foreign_id),
                )
            removed = cursor.rowcount
        if removed:
            INDEX_WRITES.labels(operation="delete").inc(removed)
            logger.debug("Removed %d index records for %s#%s", removed, model, foreign_id)
        return removed

    def clear(self, model: str | None = None) -> int:
        with self.store.transaction() as conn:
            if model is None:
                cursor = conn.execute(f"DELETE FROM {INDEX_TABLE}")
            else:
                cursor = conn.execute(f"DELETE FROM {INDEX_TABLE} WHERE model = ?", (model,))
            removed = cursor.rowcount
        if removed:
            INDEX_WRITES.labels(operation="delete").inc(removed)
        logger.info("Cleared %d index records (model=%s)", removed, model or "*")
        return removed

    def search(self, spec: QuerySpec) -> list[SearchHit]:
        sql, params = compile_spec(spec)
        with self.store.read() as conn:
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.OperationalError:
                logger.debug("Search statement failed: %s params=%s", sql, params)
                raise
        return [
            SearchHit(foreign_id=foreign_id, model=model, field=field, content=content, score=float(score or 0.0))
            for foreign_id, model, field, content, score in rows
        ]

    def stats(self) -> dict[str, int]:
        with self.store.read() as conn:
            rows = conn.execute(f"SELECT model, COUNT(*) FROM {INDEX_TABLE} GROUP BY model ORDER BY model").fetchall()
        return {model: int(count) for model, count in rows}
