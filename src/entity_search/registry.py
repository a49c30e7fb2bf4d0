"""Searchable entity registry powering per-entity search customization.

Entity types are registered once at process start with the fields to index
and optional pre/post-search handlers. Handlers are looked up by entity type
only; there is no global default handler.

A handler reference may be an instance, a class (instantiated without
arguments) or an import path such as ``"app.hooks:PersonPreSearch"``. A
reference that cannot be imported, instantiated or that does not provide the
handler method is logged and ignored so a misconfigured extension never
breaks search.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import importlib
import logging
import threading
from typing import Any, Protocol, runtime_checkable

from entity_search.domain.errors import HookResolutionError, InputError
from entity_search.domain.search import QuerySpec, SearchHit
from entity_search.observability.metrics import HOOK_RESOLUTION_FAILURES


logger = logging.getLogger(__name__)

Formatter = Callable[[Any], Any]


@runtime_checkable
class PreSearchHandler(Protocol):
    """Augments the query specification before it is executed."""

    def pre_search(
        self,
        spec: QuerySpec,
        query: str,
        entity: str,
        field: str | None,
    ) -> QuerySpec:  # pragma: no cover - Protocol only
        """Return a (possibly modified) copy of ``spec``; the store must not be written."""


@runtime_checkable
class PostSearchHandler(Protocol):
    """Filters, reorders or enriches search hits after execution."""

    def post_search(
        self,
        hits: list[SearchHit],
        query: str,
        entity: str,
        field: str | None,
    ) -> list[SearchHit]:  # pragma: no cover - Protocol only
        """Return the hits that replace the raw result set."""


def model_name(entity: object) -> str:
    """Normalize an entity type reference into its model identifier.

    Strings are used as-is (trimmed); classes map to ``module.QualName``.
    """
    if isinstance(entity, type):
        return f"{entity.__module__}.{entity.__qualname__}"
    if isinstance(entity, str) and entity.strip():
        return entity.strip()
    raise InputError(f"Malformed entity reference: {entity!r}")


@dataclass(frozen=True)
class SearchHookDescriptor:
    """Declared pre/post-search handler references for one entity type."""

    pre_search: object | None = None
    post_search: object | None = None


@dataclass(frozen=True)
class SearchableEntity:
    """Registry entry describing how one entity type is indexed and searched."""

    model: str
    fields: tuple[str, ...] = ()
    formatters: Mapping[str, Formatter] = field(default_factory=dict)
    hooks: SearchHookDescriptor = field(default_factory=SearchHookDescriptor)


@dataclass(frozen=True)
class ResolvedHooks:
    """Handlers ready to invoke; ``None`` means the entity has no such hook."""

    pre_search: PreSearchHandler | None = None
    post_search: PostSearchHandler | None = None


NO_HOOKS = ResolvedHooks()


def _import_reference(path: str) -> Any:
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise HookResolutionError(f"Invalid handler path {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise HookResolutionError(f"Cannot import module {module_name!r}: {e}") from e
    try:
        target = module
        for part in attr.split("."):
            target = getattr(target, part)
    except AttributeError as e:
        raise HookResolutionError(f"Module {module_name!r} has no attribute {attr!r}") from e
    return target


def _load_handler(reference: object, protocol: type) -> Any:
    target = _import_reference(reference) if isinstance(reference, str) else reference
    if isinstance(target, type):
        try:
            target = target()
        except Exception as e:
            raise HookResolutionError(f"Cannot instantiate {target.__qualname__}: {e}") from e
    method_name = "pre_search" if protocol is PreSearchHandler else "post_search"
    if not isinstance(target, protocol) or not callable(getattr(target, method_name, None)):
        raise HookResolutionError(f"{type(target).__qualname__} does not implement {protocol.__name__}")
    return target


class EntityRegistry:
    """Registry of searchable entity types keyed by model identifier."""

    def __init__(self, *, cache_hooks: bool = True):
        self.cache_hooks = cache_hooks
        self._entities: dict[str, SearchableEntity] = {}
        self._hook_cache: dict[str, ResolvedHooks] = {}
        self._lock = threading.Lock()

    def register(
        self,
        entity: object,
        *,
        fields: tuple[str, ...] | list[str] = (),
        formatters: Mapping[str, Formatter] | None = None,
        pre_search: object | None = None,
        post_search: object | None = None,
    ) -> SearchableEntity:
        """Register (or replace) an entity type.

        Args:
            entity: Model identifier string or entity class
            fields: Source fields copied into the index
            formatters: Optional per-field callables producing indexable values
            pre_search: Pre-search handler instance, class or import path
            post_search: Post-search handler instance, class or import path

        Returns:
            The stored registry entry
        """
        model = model_name(entity)
        unknown = set(formatters or {}) - set(fields)
        if unknown:
            raise ValueError(f"Formatters given for unindexed fields of {model}: {sorted(unknown)}")
        entry = SearchableEntity(
            model=model,
            fields=tuple(fields),
            formatters=dict(formatters or {}),
            hooks=SearchHookDescriptor(pre_search=pre_search, post_search=post_search),
        )
        with self._lock:
            self._entities[model] = entry
            self._hook_cache.pop(model, None)
        logger.debug("Registered searchable entity %s (fields=%s)", model, ", ".join(entry.fields) or "-")
        return entry

    def get(self, entity: object) -> SearchableEntity | None:
        return self._entities.get(model_name(entity))

    def __contains__(self, entity: object) -> bool:
        return self.get(entity) is not None

    def models(self) -> list[str]:
        return sorted(self._entities)

    def resolve_hooks(self, entity: object) -> ResolvedHooks:
        """Resolve the handlers declared for an entity type."""
        model = model_name(entity)
        if self.cache_hooks:
            with self._lock:
                cached = self._hook_cache.get(model)
            if cached is not None:
                return cached

        entry = self._entities.get(model)
        if entry is None:
            resolved = NO_HOOKS
        else:
            resolved = ResolvedHooks(
                pre_search=self._resolve(model, "pre_search", entry.hooks.pre_search, PreSearchHandler),
                post_search=self._resolve(model, "post_search", entry.hooks.post_search, PostSearchHandler),
            )

        if self.cache_hooks:
            with self._lock:
                self._hook_cache[model] = resolved
        return resolved

    def clear_cache(self) -> None:
        with self._lock:
            self._hook_cache.clear()

    def _resolve(self, model: str, hook: str, reference: object | None, protocol: type) -> Any:
        if reference is None:
            return None
        try:
            return _load_handler(reference, protocol)
        except HookResolutionError as e:
            HOOK_RESOLUTION_FAILURES.labels(model=model, hook=hook).inc()
            logger.warning("Ignoring %s hook for %s: %s", hook, model, e)
            return None
