"""Value objects for query construction and search results.

Following the same rules as the rest of the domain layer:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies

``QuerySpec`` is the explicit intermediate query handed to pre-search hooks.
Hooks never mutate it; they return a modified copy via ``model_copy``.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SortOrder(str, Enum):
    """Final ordering applied to grouped search hits."""

    RELEVANCE = "relevance"
    FOREIGN_ID_ASC = "foreign_id_asc"
    FOREIGN_ID_DESC = "foreign_id_desc"


class QuerySpec(BaseModel):
    """Everything the store needs to execute one search.

    ``match_expression`` is the full-text expression for the store's ranking
    function; an empty expression disables the full-text channel. Records pass
    when their full-text score is above ``min_score`` or, when
    ``substring_fallback`` is set, when their content contains the query.
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)
    match_expression: str = ""
    like_pattern: str
    min_score: float = Field(default=0.0, ge=0.0)
    models: tuple[str, ...] = ()
    fields: tuple[str, ...] = ()
    include_ids: frozenset[int] | None = None
    exclude_ids: frozenset[int] = frozenset()
    substring_fallback: bool = True
    group_by_model: bool = False
    sort: SortOrder = SortOrder.RELEVANCE
    limit: int | None = Field(default=None, ge=1)


class SearchHit(BaseModel):
    """One grouped search result.

    ``field`` and ``content`` come from the best-scoring record of the group.
    """

    model_config = ConfigDict(frozen=True)

    foreign_id: int
    model: str
    field: str
    content: str
    score: float = 0.0
