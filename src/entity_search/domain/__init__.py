"""Domain layer - pure data with no infrastructure dependencies.

- Entities: ``IndexRecord`` (identity by model, field and foreign id)
- Value Objects: ``QuerySpec`` and ``SearchHit``
- Errors raised across the indexing and search layers
"""

from entity_search.domain.errors import (
    EntitySearchError,
    ExtensionError,
    HookResolutionError,
    InputError,
    StoreError,
)
from entity_search.domain.model import IndexRecord
from entity_search.domain.search import QuerySpec, SearchHit, SortOrder


__all__ = [
    "EntitySearchError",
    "ExtensionError",
    "HookResolutionError",
    "IndexRecord",
    "InputError",
    "QuerySpec",
    "SearchHit",
    "SortOrder",
    "StoreError",
]
