"""
CLI commands for inspecting OData service schemas.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .errors import InvalidEntitySetPathError, SchemaCacheError
from .registry import from_metadata, from_url
from .schema import ResolvedSchema


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def load_schema(args) -> ResolvedSchema:
    """Build and resolve the schema selected by ``--url`` or ``--file``."""
    if args.file:
        schema = from_metadata(Path(args.file).read_text(encoding="utf-8"))
    else:
        schema = from_url(args.url)
    return asyncio.run(schema.resolve())


def cmd_inspect(args):
    """List entity sets, entity types and complex types."""
    setup_logging(args.verbose)

    try:
        schema = load_schema(args)
        summary = schema.summary()
    except (SchemaCacheError, OSError) as e:
        print(f"✗ Failed to load schema: {e}")
        return 1

    if args.json:
        print(json.dumps(summary, indent=2))
        return 0

    print(f"Types namespace: {summary['types_namespace'] or '-'}")
    print(f"Containers namespace: {summary['containers_namespace'] or '-'}")
    for title, key in (
        ("Entity sets", "entity_sets"),
        ("Entity types", "entity_types"),
        ("Complex types", "complex_types"),
    ):
        print(f"{title} ({len(summary[key])}):")
        for name in summary[key]:
            print(f"  ○ {name}")
    return 0


def cmd_find(args):
    """Resolve an entity set path such as Products/DiscontinuedProduct."""
    setup_logging(args.verbose)

    try:
        schema = load_schema(args)
        entity_set = schema.find_concrete_entity_set(args.path)
    except InvalidEntitySetPathError as e:
        print(f"✗ Invalid entity set path: {e}")
        return 1
    except (SchemaCacheError, OSError) as e:
        print(f"✗ Failed to load schema: {e}")
        return 1

    if entity_set is None:
        print(f"✗ Entity set not found: {args.path}")
        return 1

    print(f"✓ {entity_set.path} -> {entity_set.entity_type.full_name}")
    return 0


def _add_source_arguments(parser):
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="OData service root URL ($metadata is appended)")
    source.add_argument("--file", help="Path to a saved $metadata document")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="OData Schema Inspection CLI",
        prog="odata-schema"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="List the entity sets and types of a service"
    )
    _add_source_arguments(inspect_parser)
    inspect_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON"
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    # Find command
    find_parser = subparsers.add_parser(
        "find",
        help="Resolve an entity set path (Base or Base/Derived)"
    )
    find_parser.add_argument("path", help="Entity set path")
    _add_source_arguments(find_parser)
    find_parser.set_defaults(func=cmd_find)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
