"""Wire the store, repository, registry and services from Settings."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from entity_search.adapters.index_repository import SqliteIndexRepository
from entity_search.config import Settings
from entity_search.registry import EntityRegistry
from entity_search.search.query_builder import QueryBuilder
from entity_search.search.sqlite_storage import SqliteIndexStore

from .index_service import IndexService
from .search_service import SearchService


logger = logging.getLogger(__name__)


@dataclass
class SearchComponents:
    """Everything a host application needs to index and search."""

    settings: Settings
    store: SqliteIndexStore
    repository: SqliteIndexRepository
    registry: EntityRegistry
    index_service: IndexService
    search_service: SearchService

    def close(self) -> None:
        self.store.close()


def build_components(settings: Settings | None = None, registry: EntityRegistry | None = None) -> SearchComponents:
    settings = settings or Settings()
    registry = registry if registry is not None else EntityRegistry(cache_hooks=settings.hook_cache_enabled)
    store = SqliteIndexStore(settings.search_index_path, busy_timeout_ms=settings.sqlite_busy_timeout_ms)
    repository = SqliteIndexRepository(store)
    query_builder = QueryBuilder(
        min_score_multiplier=settings.min_score_multiplier,
        substring_fallback=settings.substring_fallback_enabled,
        limit=settings.get_result_limit(),
    )
    logger.debug(
        "Search components built (index=%s, min_score_multiplier=%s)",
        settings.search_index_path,
        settings.min_score_multiplier,
    )
    return SearchComponents(
        settings=settings,
        store=store,
        repository=repository,
        registry=registry,
        index_service=IndexService(repository, registry),
        search_service=SearchService(repository, registry, query_builder),
    )
