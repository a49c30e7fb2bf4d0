"""Search façade.

Composes query building, per-entity hooks and store execution behind the two
entry points callers use: ``search`` (ids of one scope) and
``search_entities`` (hits across several entity types).
"""

from collections.abc import Sequence
import logging

from entity_search.adapters.index_repository import AbstractIndexRepository
from entity_search.domain.errors import ExtensionError, InputError
from entity_search.domain.search import QuerySpec, SearchHit
from entity_search.observability.context import get_trace_context, trace_context
from entity_search.observability.metrics import SEARCH_COUNT, SEARCH_LATENCY, track_latency
from entity_search.observability.tracing import create_span
from entity_search.registry import NO_HOOKS, EntityRegistry, PostSearchHandler, PreSearchHandler, model_name
from entity_search.search.query_builder import QueryBuilder, normalize_query


logger = logging.getLogger(__name__)


def _field_filter(field: object) -> str:
    if not isinstance(field, str) or not field.strip():
        raise InputError(f"Malformed field reference: {field!r}")
    return field.strip()


def _unique(values: Sequence[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def _apply_pre_search(
    handler: PreSearchHandler, spec: QuerySpec, query: str, model: str, field: str | None
) -> QuerySpec:
    name = type(handler).__qualname__
    try:
        updated = handler.pre_search(spec, query, model, field)
    except ExtensionError:
        raise
    except Exception as e:
        raise ExtensionError(f"Pre-search hook {name} failed for {model}: {e}") from e
    if not isinstance(updated, QuerySpec):
        raise ExtensionError(f"Pre-search hook {name} for {model} returned {type(updated).__name__}, not QuerySpec")
    return updated


def _apply_post_search(
    handler: PostSearchHandler, hits: list[SearchHit], query: str, model: str, field: str | None
) -> list[SearchHit]:
    name = type(handler).__qualname__
    try:
        updated = handler.post_search(list(hits), query, model, field)
    except ExtensionError:
        raise
    except Exception as e:
        raise ExtensionError(f"Post-search hook {name} failed for {model}: {e}") from e
    if updated is None:
        raise ExtensionError(f"Post-search hook {name} for {model} returned no result set")
    updated = list(updated)
    if not all(isinstance(hit, SearchHit) for hit in updated):
        raise ExtensionError(f"Post-search hook {name} for {model} returned items that are not SearchHit")
    return updated


class SearchService:
    """High-level search orchestration service.

    Resolves the hooks of the requested entity types, builds the query
    specification, lets pre-search hooks rewrite it, executes it and lets
    post-search hooks filter or reorder the hits.
    """

    def __init__(
        self,
        repository: AbstractIndexRepository,
        registry: EntityRegistry,
        query_builder: QueryBuilder | None = None,
    ):
        """Initialize search service with dependencies.

        Args:
            repository: Index repository executing query specifications
            registry: Searchable entity registry used to resolve hooks
            query_builder: Scoring policy; defaults to QueryBuilder()
        """
        self.repository = repository
        self.registry = registry
        self.query_builder = query_builder or QueryBuilder()

    def search(self, query: str, entity: object | None = None, field: str | None = None) -> list[int]:
        """Search one entity scope and return foreign ids ordered by relevance.

        Args:
            query: Free-text query; must contain non-whitespace text
            entity: Optional model identifier or entity class to restrict to
            field: Optional field name to restrict to

        Returns:
            Foreign ids, best match first, at most once each

        Raises:
            InputError: Empty query or malformed entity/field filter
            StoreError: Index store failure
            ExtensionError: A pre/post-search hook failed
        """
        text = normalize_query(query)
        model = model_name(entity) if entity is not None else None
        field_name = _field_filter(field) if field is not None else None
        spec = self.query_builder.build(
            text,
            models=(model,) if model else (),
            fields=(field_name,) if field_name else (),
        )
        hooks = self.registry.resolve_hooks(model) if model else NO_HOOKS

        hits = self._execute(
            "single",
            spec,
            [(model, hooks)] if model else [],
            text,
            field_name,
        )
        return [hit.foreign_id for hit in hits]

    def search_entities(
        self,
        query: str,
        entities: Sequence[object] = (),
        fields: Sequence[str] = (),
    ) -> list[SearchHit]:
        """Search several entity types at once.

        Hits are grouped per (foreign id, model). Pre-search hooks of each
        requested entity type run in request order on the shared query
        specification; post-search hooks run in the same order on the shared
        hits. Hooks receive the single requested field, or None when zero or
        several fields were requested.
        """
        text = normalize_query(query)
        if isinstance(entities, (str, bytes)) or isinstance(fields, (str, bytes)):
            raise InputError("Entities and fields must be sequences, not strings")
        models = _unique([model_name(entity) for entity in entities])
        field_names = _unique([_field_filter(field) for field in fields])
        spec = self.query_builder.build(text, models=models, fields=field_names, group_by_model=True)
        hook_field = field_names[0] if len(field_names) == 1 else None

        return self._execute(
            "multi",
            spec,
            [(model, self.registry.resolve_hooks(model)) for model in models],
            text,
            hook_field,
        )

    def _execute(self, mode, spec, scoped_hooks, query, field) -> list[SearchHit]:
        models = [model for model, _ in scoped_hooks]
        token = trace_context.set({**get_trace_context(), "models": models})
        attributes = {"search.mode": mode, "search.models": models, "search.field": field}
        try:
            with create_span("entity_search.search", attributes=attributes) as span, track_latency(
                SEARCH_LATENCY, mode=mode
            ):
                for model, hooks in scoped_hooks:
                    if hooks.pre_search is not None:
                        spec = _apply_pre_search(hooks.pre_search, spec, query, model, field)

                hits = self.repository.search(spec)
                span.set_attribute("search.raw_hits", len(hits))

                for model, hooks in scoped_hooks:
                    if hooks.post_search is not None:
                        hits = _apply_post_search(hooks.post_search, hits, query, model, field)
                span.set_attribute("search.hits", len(hits))
        except Exception:
            SEARCH_COUNT.labels(mode=mode, status="error").inc()
            raise
        finally:
            trace_context.reset(token)
        SEARCH_COUNT.labels(mode=mode, status="ok").inc()
        logger.debug("Search %r (%s) returned %d hits", query, mode, len(hits))
        return hits
