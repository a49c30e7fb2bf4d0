"""Indexing pipeline: keep index records synchronized with source entities.

Source change events (create, update, delete) are translated into calls on
``IndexService``; the service extracts the registered fields, normalizes them
and upserts or removes the matching index records.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

from entity_search.adapters.index_repository import AbstractIndexRepository
from entity_search.domain.errors import InputError
from entity_search.domain.model import IndexRecord
from entity_search.observability.tracing import create_span
from entity_search.registry import EntityRegistry, model_name
from entity_search.search.normalization import normalize_content


logger = logging.getLogger(__name__)


@dataclass
class IndexingResult:
    """Summary of an indexing call."""

    indexed: int = 0
    removed: int = 0
    entities: int = 0

    def merge(self, other: "IndexingResult") -> None:
        self.indexed += other.indexed
        self.removed += other.removed
        self.entities += other.entities


def _validate_foreign_id(foreign_id: object) -> int:
    if isinstance(foreign_id, bool) or not isinstance(foreign_id, int):
        raise InputError(f"Foreign id must be an integer, got {foreign_id!r}")
    return foreign_id


def _validate_field(field: object) -> str:
    if not isinstance(field, str) or not field.strip():
        raise InputError(f"Malformed field reference: {field!r}")
    return field.strip()


def _field_value(source: Any, field: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(field)
    return getattr(source, field, None)


class IndexService:
    """Owns every write to the search side table."""

    def __init__(self, repository: AbstractIndexRepository, registry: EntityRegistry):
        self.repository = repository
        self.registry = registry

    def upsert(self, entity: object, foreign_id: int, field: str, content: Any) -> IndexRecord | None:
        """Create or replace one index record; empty content removes it instead."""
        model = model_name(entity)
        return self.repository.upsert(
            model,
            _validate_foreign_id(foreign_id),
            _validate_field(field),
            normalize_content(content),
        )

    def find_existing(self, entity: object, field: str, foreign_id: int) -> IndexRecord | None:
        return self.repository.find_existing(
            model_name(entity), _validate_field(field), _validate_foreign_id(foreign_id)
        )

    def index_entity(self, entity: object, foreign_id: int, source: Any) -> IndexingResult:
        """Index every searchable field of one source record.

        Fields come from the registry entry; an unregistered entity given as a
        mapping indexes all of its keys. Fields that no longer yield content
        have their record removed.
        """
        model = model_name(entity)
        foreign_id = _validate_foreign_id(foreign_id)
        entry = self.registry.get(model)
        if entry is not None and entry.fields:
            fields = entry.fields
            formatters = entry.formatters
        elif isinstance(source, Mapping):
            fields = tuple(str(key) for key in source)
            formatters = {}
        else:
            raise InputError(f"No searchable fields registered for {model}")

        result = IndexingResult(entities=1)
        with create_span("entity_search.index_entity", attributes={"search.model": model, "search.fields": fields}):
            for field in fields:
                value = _field_value(source, field)
                formatter = formatters.get(field)
                if formatter is not None:
                    value = formatter(value)
                content = normalize_content(value)
                if content:
                    self.repository.upsert(model, foreign_id, field, content)
                    result.indexed += 1
                else:
                    result.removed += self.repository.delete(model, foreign_id, field)
        return result

    def remove_entity(self, entity: object, foreign_id: int) -> int:
        """Remove every index record of a deleted source record."""
        return self.repository.delete(model_name(entity), _validate_foreign_id(foreign_id))

    def populate(self, entity: object, records: Iterable[tuple[int, Any]]) -> IndexingResult:
        """Rebuild the index of one entity type from ``(foreign_id, source)`` pairs."""
        model = model_name(entity)
        total = IndexingResult()
        with create_span("entity_search.populate", attributes={"search.model": model}):
            total.removed = self.repository.clear(model)
            for foreign_id, source in records:
                total.merge(self.index_entity(model, foreign_id, source))
        logger.info(
            "Populated %s: %d entities, %d records indexed",
            model,
            total.entities,
            total.indexed,
        )
        return total
