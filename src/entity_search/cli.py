"""Operator CLI for the entity search index.

Populates the index from JSON-lines exports of source records, runs ad-hoc
searches against it and prints per-model record counts, so the index can be
inspected without a Python REPL.
"""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
from collections.abc import Iterator, Sequence
from pathlib import Path
import sys
import textwrap
from typing import Any

import orjson

from entity_search.config import Settings
from entity_search.domain.errors import EntitySearchError
from entity_search.observability.logging import configure_logging
from entity_search.observability.metrics import init_metrics
from entity_search.observability.tracing import init_tracing
from entity_search.service_layer.bootstrap import SearchComponents, build_components


DEFAULT_ID_KEY = "id"


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="entity-search",
        description="Populate and query the entity search index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              entity-search --db index.db populate --model Person --file people.jsonl --fields name bio
              entity-search --db index.db search "hello" --entity Person
              entity-search --db index.db search-entities "acme" --entity Person --entity Company
              entity-search --db index.db stats
            """
        ).strip(),
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite index (default: SEARCH_INDEX_PATH or ./search_index.db)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (debug, info, warning, error)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    populate = subparsers.add_parser("populate", help="Rebuild the index of one entity type from a JSONL file")
    populate.add_argument("--model", required=True, help="Entity type identifier")
    populate.add_argument("--file", type=Path, required=True, help="JSON-lines file with one source record per line")
    populate.add_argument(
        "--fields",
        nargs="+",
        metavar="FIELD",
        help="Fields to index (default: every key except the id key)",
    )
    populate.add_argument(
        "--id-key",
        default=DEFAULT_ID_KEY,
        help=f"Key holding the foreign id in each record (default: {DEFAULT_ID_KEY})",
    )

    search = subparsers.add_parser("search", help="Print matching foreign ids, best match first")
    search.add_argument("query", help="Free-text query")
    search.add_argument("--entity", help="Restrict to one entity type")
    search.add_argument("--field", help="Restrict to one field")

    search_entities = subparsers.add_parser("search-entities", help="Print hits across several entity types")
    search_entities.add_argument("query", help="Free-text query")
    search_entities.add_argument(
        "--entity",
        dest="entities",
        action="append",
        default=[],
        metavar="ENTITY",
        help="Entity type to include. Pass multiple times; omit to search every type",
    )
    search_entities.add_argument(
        "--field",
        dest="fields",
        action="append",
        default=[],
        metavar="FIELD",
        help="Field to include. Pass multiple times; omit to search every field",
    )

    subparsers.add_parser("stats", help="Print index record counts per entity type")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    settings = Settings(search_index_path=args.db) if args.db is not None else Settings()
    configure_logging(level=args.log_level or settings.log_level, json_output=settings.log_json)
    init_tracing(service_name=settings.service_name)
    init_metrics(service_name=settings.service_name)

    components = build_components(settings)
    try:
        return _COMMANDS[args.command](components, args)
    except EntitySearchError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    finally:
        components.close()


def _run_populate(components: SearchComponents, args: argparse.Namespace) -> int:
    if args.fields:
        components.registry.register(args.model, fields=args.fields)
    try:
        records = list(_read_records(args.file, args.id_key))
    except FileNotFoundError as exc:
        print(f"Input not found: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid input file: {exc}", file=sys.stderr)
        return 1

    result = components.index_service.populate(args.model, records)
    print(
        f"Populated {args.model}: {result.entities} records, "
        f"{result.indexed} fields indexed, {result.removed} stale entries removed"
    )
    return 0


def _run_search(components: SearchComponents, args: argparse.Namespace) -> int:
    ids = components.search_service.search(args.query, entity=args.entity, field=args.field)
    for foreign_id in ids:
        print(foreign_id)
    return 0


def _run_search_entities(components: SearchComponents, args: argparse.Namespace) -> int:
    hits = components.search_service.search_entities(args.query, args.entities, args.fields)
    for hit in hits:
        print(orjson.dumps(hit.model_dump()).decode("utf-8"))
    return 0


def _run_stats(components: SearchComponents, args: argparse.Namespace) -> int:
    counts = components.repository.stats()
    if not counts:
        print("Index is empty.")
        return 0
    for model, count in counts.items():
        print(f"- {model:<30} {count} records")
    print(f"Total: {sum(counts.values())} records")
    return 0


_COMMANDS = {
    "populate": _run_populate,
    "search": _run_search,
    "search-entities": _run_search_entities,
    "stats": _run_stats,
}


def _read_records(path: Path, id_key: str) -> Iterator[tuple[int, dict[str, Any]]]:
    with path.open("rb") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                payload = orjson.loads(line)
            except orjson.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_number}: {exc}") from exc
            if not isinstance(payload, dict):
                raise ValueError(f"{path}:{line_number}: expected a JSON object")
            foreign_id = payload.pop(id_key, None)
            if isinstance(foreign_id, bool) or not isinstance(foreign_id, int):
                raise ValueError(f"{path}:{line_number}: missing integer {id_key!r}")
            yield foreign_id, payload


if __name__ == "__main__":
    raise SystemExit(main())
