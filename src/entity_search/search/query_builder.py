"""Query construction and SQL compilation for relevance-ranked index searches.

A search combines two channels with OR:
- full-text: FTS5 ``bm25()`` relevance (negated so higher is better) is
  normalized onto the query-length scale, ``len(query) * raw / best_raw``
  over the filtered candidates, and must be above
  ``round(len(query) * min_score_multiplier)``; with the default multiplier a
  record passes when it scores above roughly 80% of the best match
- substring fallback: ``content LIKE '%query%'`` regardless of score, so short
  or stop-word-heavy queries still surface literal hits

Rows are grouped by foreign id (and model for multi-entity searches); the
group carries its best score and the field/content of its best row.
"""

from __future__ import annotations

import math
import re
from typing import Any

from entity_search.domain.errors import InputError
from entity_search.domain.search import QuerySpec, SortOrder
from entity_search.search.sqlite_storage import FTS_TABLE, INDEX_TABLE


_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)
_LIKE_ESCAPE = "\\"

_ORDER_BY = {
    SortOrder.RELEVANCE: "match_quote DESC, c.foreign_id ASC, c.model ASC",
    SortOrder.FOREIGN_ID_ASC: "c.foreign_id ASC, c.model ASC",
    SortOrder.FOREIGN_ID_DESC: "c.foreign_id DESC, c.model ASC",
}


def normalize_query(query: object) -> str:
    """Return the trimmed query text or raise ``InputError`` when it is empty."""
    if not isinstance(query, str):
        raise InputError(f"Search query must be a string, got {type(query).__name__}")
    normalized = query.strip()
    if not normalized:
        raise InputError("Search query must not be empty")
    return normalized


def minimum_score(query: str, multiplier: float) -> int:
    """Full-text score floor for a query, rounding halves up."""
    return math.floor(len(query) * multiplier + 0.5)


def tokenize_query(query: str) -> list[str]:
    """Split a query into unique word tokens, preserving first-seen order."""
    seen: dict[str, None] = {}
    for token in _TOKEN_PATTERN.findall(query.lower()):
        seen.setdefault(token, None)
    return list(seen)


def build_match_expression(query: str) -> str:
    """Build an FTS5 expression matching any query token.

    Tokens are quoted so FTS5 operators and column filters in user input are
    treated as plain text. Returns an empty string when the query has no word
    tokens.
    """
    return " OR ".join(f'"{token}"' for token in tokenize_query(query))


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


class QueryBuilder:
    """Build ``QuerySpec`` values with the configured scoring policy."""

    def __init__(
        self,
        *,
        min_score_multiplier: float = 0.8,
        substring_fallback: bool = True,
        limit: int | None = None,
    ):
        self.min_score_multiplier = min_score_multiplier
        self.substring_fallback = substring_fallback
        self.limit = limit

    def build(
        self,
        query: str,
        *,
        models: tuple[str, ...] = (),
        fields: tuple[str, ...] = (),
        group_by_model: bool = False,
    ) -> QuerySpec:
        """Build the query specification for a normalized query string."""
        return QuerySpec(
            query=query,
            match_expression=build_match_expression(query),
            like_pattern=f"%{escape_like(query)}%",
            min_score=minimum_score(query, self.min_score_multiplier),
            models=models,
            fields=fields,
            substring_fallback=self.substring_fallback,
            group_by_model=group_by_model,
            limit=self.limit,
        )


def compile_spec(spec: QuerySpec) -> tuple[str, dict[str, Any]]:
    """Compile a query specification into SQL and named parameters.

    Filters narrow the candidate rows first; full-text scores are normalized
    against the best candidate so the score floor and the raw ``bm25()``
    values share one scale.
    """
    params: dict[str, Any] = {}
    use_fulltext = bool(spec.match_expression)

    filters: list[str] = []
    filters.extend(_in_condition("i.model", "model", spec.models, params))
    filters.extend(_in_condition("i.field", "field", spec.fields, params))
    if spec.include_ids is not None:
        filters.extend(_in_condition("i.foreign_id", "include_id", sorted(spec.include_ids), params) or ["0"])
    if spec.exclude_ids:
        placeholders = _placeholders("exclude_id", sorted(spec.exclude_ids), params)
        filters.append(f"i.foreign_id NOT IN ({placeholders})")

    channels: list[str] = []
    if use_fulltext:
        score_expr = ":score_scale * m.raw / NULLIF(MAX(m.raw) OVER (), 0)"
        join = (
            f"LEFT JOIN (SELECT rowid AS rid, -bm25({FTS_TABLE}) AS raw FROM {FTS_TABLE} "
            f"WHERE {FTS_TABLE} MATCH :match_expression) AS m ON m.rid = i.id "
        )
        params["match_expression"] = spec.match_expression
        params["score_scale"] = float(len(spec.query))
        channels.append("c.score > :min_score")
        params["min_score"] = spec.min_score
    else:
        score_expr = "NULL"
        join = ""
    if spec.substring_fallback:
        channels.append(f"c.content LIKE :like_pattern ESCAPE '{_LIKE_ESCAPE}'")
        params["like_pattern"] = spec.like_pattern

    candidates = (
        f"SELECT i.foreign_id, i.model, i.field, i.content, {score_expr} AS score "
        f"FROM {INDEX_TABLE} AS i {join}"
        + (f"WHERE {' AND '.join(filters)}" if filters else "")
    ).strip()
    group_by = "c.foreign_id, c.model" if spec.group_by_model else "c.foreign_id"
    sql = (
        f"WITH candidates AS ({candidates}) "
        "SELECT c.foreign_id, c.model, c.field, c.content, MAX(COALESCE(c.score, 0.0)) AS match_quote "
        "FROM candidates AS c "
        f"WHERE {' OR '.join(channels) if channels else '0'} "
        f"GROUP BY {group_by} "
        f"ORDER BY {_ORDER_BY[spec.sort]}"
    )
    if spec.limit is not None:
        sql += " LIMIT :limit"
        params["limit"] = spec.limit
    return sql, params


def _placeholders(prefix: str, values, params: dict[str, Any]) -> str:
    names = []
    for index, value in enumerate(values):
        name = f"{prefix}_{index}"
        params[name] = value
        names.append(f":{name}")
    return ", ".join(names)


def _in_condition(column: str, prefix: str, values, params: dict[str, Any]) -> list[str]:
    if not values:
        return []
    return [f"{column} IN ({_placeholders(prefix, values, params)})"]
