"""Shared test fixtures and configuration."""

import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(REPO_ROOT / "src"))


# Complete test environment that overrides ALL possible config values
TEST_ENV = {
    # Store settings
    "SEARCH_INDEX_PATH": "search_index.db",
    "SQLITE_BUSY_TIMEOUT_MS": "30000",
    # Scoring settings
    "MIN_SCORE_MULTIPLIER": "0.8",
    "SUBSTRING_FALLBACK_ENABLED": "true",
    "SEARCH_RESULT_LIMIT": "0",
    # Hook settings
    "HOOK_CACHE_ENABLED": "true",
    # Logging
    "LOG_LEVEL": "info",
    "LOG_JSON": "true",
    "SERVICE_NAME": "entity-search-test",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

# Now we can safely import config-dependent modules
from entity_search.adapters.index_repository import SqliteIndexRepository
from entity_search.registry import EntityRegistry
from entity_search.search.query_builder import QueryBuilder
from entity_search.search.sqlite_storage import SqliteIndexStore
from entity_search.service_layer.index_service import IndexService
from entity_search.service_layer.search_service import SearchService


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Clean environment variables before each test and set test defaults."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def index_path(tmp_path: Path) -> Path:
    return tmp_path / "index" / "search_index.db"


@pytest.fixture
def test_settings(index_path: Path):
    """Settings pointing at a per-test index file."""
    from entity_search.config import Settings

    return Settings(search_index_path=index_path)


@pytest.fixture
def store(index_path: Path):
    store = SqliteIndexStore(index_path)
    yield store
    store.close()


@pytest.fixture
def repository(store: SqliteIndexStore) -> SqliteIndexRepository:
    return SqliteIndexRepository(store)


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry()


@pytest.fixture
def index_service(repository: SqliteIndexRepository, registry: EntityRegistry) -> IndexService:
    return IndexService(repository, registry)


@pytest.fixture
def search_service(repository: SqliteIndexRepository, registry: EntityRegistry) -> SearchService:
    """Search service with the default scoring policy."""
    return SearchService(repository, registry, QueryBuilder())


@pytest.fixture
def fulltext_search_service(repository: SqliteIndexRepository, registry: EntityRegistry) -> SearchService:
    """Search service where any positive full-text score qualifies and substrings do not."""
    return SearchService(repository, registry, QueryBuilder(min_score_multiplier=0.0, substring_fallback=False))
