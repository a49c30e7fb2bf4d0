"""Service layer - use cases over the index repository.

- IndexService keeps index records synchronized with source entities
- SearchService runs queries with per-entity pre/post-search hooks
"""

from .bootstrap import SearchComponents, build_components
from .index_service import IndexingResult, IndexService
from .search_service import SearchService


__all__ = [
    "IndexService",
    "IndexingResult",
    "SearchComponents",
    "SearchService",
    "build_components",
]
