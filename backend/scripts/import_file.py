"""Import a CSV file from the command line.

Prints the ImportResult as JSON. Exit status is 0 when the import (or the
dry run) succeeded, 1 otherwise, 2 for an unreadable file or unknown schema.

Run:
  python scripts/import_file.py clients.csv --schema clients
  python scripts/import_file.py projects.csv --schema projects --dry-run
  python scripts/import_file.py clients.csv --schema clients --preview 5
  python scripts/import_file.py --schema users --template > users_template.csv
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crm_import.core.deps import build_executor, get_registry, get_transformer
from crm_import.core.logging import setup_logging
from crm_import.db.session import session_scope
from crm_import.imports.errors import FileValidationError, SchemaNotFoundError
from crm_import.imports.parser import read_upload
from crm_import.imports.templates import render_template
from crm_import.imports.validation import preview_data, validate_data
from crm_import.schemas.imports import ImportPreview, ImportResult


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bulk-import CRM records from a CSV file.")
    parser.add_argument("path", nargs="?", help="CSV file to import")
    parser.add_argument("--schema", required=True, help="clients, projects or users")
    parser.add_argument("--dry-run", action="store_true", help="validate only, write nothing")
    parser.add_argument("--template", action="store_true", help="print a sample CSV for the schema and exit")
    parser.add_argument("--preview", type=int, metavar="N", help="print the first N rows as parsed and exit")
    return parser


def preview(path: str, schema_name: str, limit: int) -> ImportPreview:
    p = Path(path)
    rows = read_upload(p.read_bytes(), filename=p.name)
    return preview_data(rows, schema_name, get_registry(), get_transformer(), limit=limit)


async def run(path: str, schema_name: str, dry_run: bool) -> ImportResult:
    registry = get_registry()
    transformer = get_transformer()
    registry.get(schema_name)

    p = Path(path)
    rows = read_upload(p.read_bytes(), filename=p.name)
    if dry_run:
        return validate_data(rows, schema_name, registry, transformer)

    async with session_scope() as session:
        executor = build_executor(session, registry, transformer)
        return await executor.execute_import(rows, schema_name)


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    setup_logging()

    if args.template:
        try:
            print(render_template(get_registry().get(args.schema)), end="")
        except SchemaNotFoundError as exc:
            print(str(exc), file=sys.stderr)
            return 2
        return 0

    if not args.path:
        print("A CSV path is required unless --template is given.", file=sys.stderr)
        return 2

    try:
        if args.preview is not None:
            print(preview(args.path, args.schema, args.preview).model_dump_json(indent=2))
            return 0
        result = asyncio.run(run(args.path, args.schema, args.dry_run))
    except SchemaNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except FileValidationError as exc:
        for error in exc.errors:
            print(error, file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"Cannot read {args.path}: {exc}", file=sys.stderr)
        return 2

    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
