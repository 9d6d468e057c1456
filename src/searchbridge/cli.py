"""CLI entry point for searchbridge."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from searchbridge.adapters.base.exceptions import AdapterError
from searchbridge.adapters.elasticsearch import codec
from searchbridge.adapters.elasticsearch.adapter import ElasticsearchAdapter
from searchbridge.config.settings import Settings
from searchbridge.models.records import QuerySpec, RecordTypes
from searchbridge.observability.logging import setup_logging

logger = logging.getLogger(__name__)


def load_record_types(path: str | Path) -> RecordTypes:
    """Load record types from YAML.

    Each field is either a mapping of descriptor attributes or a bare type tag::

        user:
          name: string
          avatar: buffer
          friends: {type: string, is_array: true}
    """
    import yaml  # type: ignore[import-untyped]

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return {
        record_type: {
            name: ({"type": desc} if isinstance(desc, str) or desc is None else desc)
            for name, desc in (fields or {}).items()
        }
        for record_type, fields in data.items()
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="searchbridge",
        description="searchbridge — Record operations over Elasticsearch",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument("--types", "-t", type=str, required=True, help="Path to YAML record types file")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument("--version", action="version", version=f"searchbridge {_get_version()}")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("bootstrap", help="Create the index, template and mappings, then exit")

    find = sub.add_parser("find", help="Find records and print them as JSON")
    find.add_argument("record_type", help="Record type to search")
    find.add_argument("--id", dest="ids", action="append", default=None, help="Record id (repeatable)")
    find.add_argument("--query", "-q", type=str, default=None, help="Free-text query")
    find.add_argument("--limit", "-n", type=int, default=None, help="Maximum number of records")
    return parser


async def _run(args: argparse.Namespace, settings: Settings, record_types: RecordTypes) -> int:
    async with ElasticsearchAdapter(record_types, settings.elasticsearch) as adapter:
        if args.command == "bootstrap":
            print(f"Index '{settings.elasticsearch.index}' ready ({adapter.dialect.value} dialect)")
            return 0

        options = QuerySpec(query=args.query, limit=args.limit)
        page = await adapter.find(args.record_type, ids=args.ids, options=options)
        output: dict[str, Any] = {"count": page.count, "records": list(page)}
        print(json.dumps(output, default=codec.json_default, indent=2))
        return 0


def main() -> None:
    """Main CLI entry point."""
    args = _build_parser().parse_args()

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    if args.log_level:
        settings.observability.log_level = args.log_level
    setup_logging(settings.observability)

    types_path = Path(args.types)
    if not types_path.exists():
        print(f"Error: Record types file not found: {types_path}", file=sys.stderr)
        sys.exit(1)
    record_types = load_record_types(types_path)

    try:
        sys.exit(asyncio.run(_run(args, settings, record_types)))
    except AdapterError as e:
        logger.error("Command %s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _get_version() -> str:
    try:
        from searchbridge import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
