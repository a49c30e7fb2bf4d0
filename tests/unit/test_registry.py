"""Unit tests for entity_search.registry."""

from __future__ import annotations

import logging

import pytest

from entity_search.domain.errors import InputError
from entity_search.domain.search import QuerySpec, SearchHit
from entity_search.observability.metrics import HOOK_RESOLUTION_FAILURES
from entity_search.registry import (
    NO_HOOKS,
    EntityRegistry,
    PostSearchHandler,
    PreSearchHandler,
    model_name,
)


class OnlyNamePreSearch:
    def pre_search(self, spec: QuerySpec, query: str, entity: str, field: str | None) -> QuerySpec:
        return spec.model_copy(update={"fields": ("name",)})


class ReversePostSearch:
    def post_search(self, hits: list[SearchHit], query: str, entity: str, field: str | None) -> list[SearchHit]:
        return list(reversed(hits))


class NeedsArguments:
    def __init__(self, required: str) -> None:
        self.required = required

    def pre_search(self, spec, query, entity, field):
        return spec


class BrokenConstructor:
    def __init__(self) -> None:
        raise ValueError("missing credentials")

    def pre_search(self, spec, query, entity, field):
        return spec


class NotAHook:
    """Has neither handler method."""


class Person:
    pass


class TestModelName:
    def test_strings_are_trimmed(self):
        assert model_name("  Person ") == "Person"

    def test_classes_map_to_qualified_name(self):
        assert model_name(Person) == f"{__name__}.Person"

    @pytest.mark.parametrize("entity", ["", "   ", 42, None, Person()])
    def test_malformed_references_rejected(self, entity):
        with pytest.raises(InputError):
            model_name(entity)


class TestRegistration:
    def test_register_and_lookup(self):
        registry = EntityRegistry()

        entry = registry.register(Person, fields=["name", "bio"])

        assert registry.get(Person) is entry
        assert registry.get(f"{__name__}.Person") is entry
        assert Person in registry
        assert "Company" not in registry
        assert entry.fields == ("name", "bio")
        assert registry.models() == [f"{__name__}.Person"]

    def test_formatters_must_target_indexed_fields(self):
        with pytest.raises(ValueError, match="unindexed"):
            EntityRegistry().register("Person", fields=["name"], formatters={"bio": str})

    def test_protocols_are_runtime_checkable(self):
        assert isinstance(OnlyNamePreSearch(), PreSearchHandler)
        assert isinstance(ReversePostSearch(), PostSearchHandler)
        assert not isinstance(NotAHook(), PreSearchHandler)


class TestResolveHooks:
    def test_unregistered_entity_has_no_hooks(self):
        assert EntityRegistry().resolve_hooks("Person") is NO_HOOKS

    def test_instances_are_used_as_is(self):
        handler = OnlyNamePreSearch()
        registry = EntityRegistry()
        registry.register("Person", pre_search=handler)

        hooks = registry.resolve_hooks("Person")

        assert hooks.pre_search is handler
        assert hooks.post_search is None

    def test_classes_are_instantiated(self):
        registry = EntityRegistry()
        registry.register("Person", post_search=ReversePostSearch)

        assert isinstance(registry.resolve_hooks("Person").post_search, ReversePostSearch)

    @pytest.mark.parametrize("separator", [":", "."])
    def test_import_paths_are_resolved(self, separator):
        registry = EntityRegistry()
        registry.register("Person", pre_search=f"{__name__}{separator}OnlyNamePreSearch")

        assert isinstance(registry.resolve_hooks("Person").pre_search, OnlyNamePreSearch)

    @pytest.mark.parametrize(
        "reference",
        [
            "no_such_module_for_entity_search:Hook",
            f"{__name__}:MissingHook",
            "NoModulePath",
            NeedsArguments,
            BrokenConstructor,
            NotAHook,
            NotAHook(),
        ],
    )
    def test_unresolvable_hooks_are_ignored(self, reference, caplog):
        registry = EntityRegistry()
        registry.register("Person", pre_search=reference)

        with caplog.at_level(logging.WARNING, logger="entity_search.registry"):
            hooks = registry.resolve_hooks("Person")

        assert hooks.pre_search is None
        assert "Ignoring pre_search hook for Person" in caplog.text

    def test_resolution_failures_are_counted(self, monkeypatch):
        calls = []
        monkeypatch.setattr(HOOK_RESOLUTION_FAILURES, "inc", lambda labels, amount: calls.append(labels))
        registry = EntityRegistry()
        registry.register("Person", post_search="no_such_module_for_entity_search.Hook")

        registry.resolve_hooks("Person")

        assert calls == [{"model": "Person", "hook": "post_search"}]

    def test_resolution_is_cached(self, monkeypatch):
        calls = []
        monkeypatch.setattr(HOOK_RESOLUTION_FAILURES, "inc", lambda labels, amount: calls.append(labels))
        registry = EntityRegistry()
        registry.register("Person", pre_search="no_such_module_for_entity_search:Hook")

        first = registry.resolve_hooks("Person")
        second = registry.resolve_hooks("Person")

        assert first is second
        assert len(calls) == 1

    def test_cache_can_be_disabled(self):
        registry = EntityRegistry(cache_hooks=False)
        registry.register("Person", pre_search=OnlyNamePreSearch)

        assert registry.resolve_hooks("Person") is not registry.resolve_hooks("Person")

    def test_reregistering_invalidates_cache(self):
        registry = EntityRegistry()
        registry.register("Person", pre_search=OnlyNamePreSearch)
        registry.resolve_hooks("Person")

        registry.register("Person", post_search=ReversePostSearch)
        hooks = registry.resolve_hooks("Person")

        assert hooks.pre_search is None
        assert isinstance(hooks.post_search, ReversePostSearch)

    def test_clear_cache(self):
        registry = EntityRegistry()
        registry.register("Person", pre_search=OnlyNamePreSearch)
        first = registry.resolve_hooks("Person")

        registry.clear_cache()

        assert registry.resolve_hooks("Person") is not first
