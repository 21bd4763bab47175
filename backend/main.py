"""treecore - GEDCOM import/export and family chart command line.

Subcommands:
    validate FILE                  structural check with an import preview
    import FILE                    map to people and relationships (JSON)
    export FILE [-o OUT]           regenerate a clean GEDCOM 5.5.1 file
    chart FILE PERSON [--type T]   chart nodes and edges (JSON)
"""

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("TREECORE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("treecore")

from chart_utils import CHART_TYPES, get_chart_data
from gedcom_utils import (
    format_gedcom_file_name,
    generate_gedcom_output,
    map_gedcom_to_entities,
    parse_gedcom_file,
    validate_gedcom_import_prerequisites,
    validate_gedcom_structure,
    verify_export_readable,
)
from lineage.errors import FormatError


# ============================================================================
# Commands
# ============================================================================

def cmd_validate(args: argparse.Namespace) -> int:
    gedcom_file = parse_gedcom_file(args.file)
    result = validate_gedcom_structure(gedcom_file)

    for error in result.errors:
        print(f"[{error.type}] {error.message}")
    if result.preview:
        print(f"People: {result.preview.people_count}")
        print(f"Families: {result.preview.families_count}")
    print("Valid" if result.valid else "Invalid")
    return 0 if result.valid else 1


def cmd_import(args: argparse.Namespace) -> int:
    gedcom_file = parse_gedcom_file(args.file)
    prerequisites = validate_gedcom_import_prerequisites(gedcom_file)
    if not prerequisites.valid:
        for error in prerequisites.errors:
            logger.error(f"{error.type}: {error.message}")
        return 1

    mapped = map_gedcom_to_entities(gedcom_file)
    print(mapped.model_dump_json(indent=2))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    gedcom_file = parse_gedcom_file(args.file)
    mapped = map_gedcom_to_entities(gedcom_file)
    content = generate_gedcom_output(mapped.people, mapped.relationships)

    for problem in verify_export_readable(content):
        logger.warning(f"Export check: {problem}")

    output = args.output or format_gedcom_file_name()
    with open(output, "w", encoding="utf-8", newline="\n") as f:
        f.write(content)
    logger.info(f"Exported {len(mapped.people)} people to {output}")
    return 0


def cmd_chart(args: argparse.Namespace) -> int:
    gedcom_file = parse_gedcom_file(args.file)
    mapped = map_gedcom_to_entities(gedcom_file)
    chart = get_chart_data(args.type, mapped.people, mapped.relationships, args.person, args.generations)
    if isinstance(chart, str):
        logger.error(chart)
        return 1
    print(json.dumps(chart.model_dump(mode="json", exclude_none=True), indent=2))
    return 0


# ============================================================================
# Entry Point
# ============================================================================

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="treecore", description="GEDCOM import/export and family charts")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Check a GEDCOM file and preview an import")
    validate_parser.add_argument("file", help="Path to a .ged file")
    validate_parser.set_defaults(handler=cmd_validate)

    import_parser = subparsers.add_parser("import", help="Map a GEDCOM file to people and relationships")
    import_parser.add_argument("file", help="Path to a .ged file")
    import_parser.set_defaults(handler=cmd_import)

    export_parser = subparsers.add_parser("export", help="Regenerate a GEDCOM 5.5.1 file")
    export_parser.add_argument("file", help="Path to a .ged file")
    export_parser.add_argument("-o", "--output", help="Output path (default: family-tree-<date>.ged)")
    export_parser.set_defaults(handler=cmd_export)

    chart_parser = subparsers.add_parser("chart", help="Build chart data for a person")
    chart_parser.add_argument("file", help="Path to a .ged file")
    chart_parser.add_argument("person", help="GEDCOM ID (e.g. I1 or @I1@) or full name")
    chart_parser.add_argument("--type", choices=CHART_TYPES, default="ancestor", help="Chart type")
    chart_parser.add_argument("--generations", type=int, default=3, help="Generations to include")
    chart_parser.set_defaults(handler=cmd_chart)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        return args.handler(args)
    except FormatError as e:
        logger.error(f"Could not parse {args.file}: {e}")
        return 1
    except OSError as e:
        logger.error(f"File error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
