"""Sample CSV documents that show users what an import file should look like."""
import csv
import io

from crm_import.imports.registry import ImportSchema


def template_filename(schema_key: str) -> str:
    return f"{schema_key}_import_template.csv"


def render_template(schema: ImportSchema) -> str:
    """Comment lines, the header row and one example row.

    The comment lines start with `#`, which the parser skips ahead of the
    header, so the template itself imports as a single example row.
    """
    required = schema.required_fields
    optional = [c for c in schema.columns if c not in required]
    buf = io.StringIO()
    buf.write(f"# {schema.name}: {schema.description}\n")
    buf.write(f"# Required fields: {' / '.join(required) or 'none'}\n")
    if optional:
        buf.write(f"# Optional fields (left blank they are skipped or auto-filled): {' / '.join(optional)}\n")
    buf.write(f"# Rows matching an existing record on {' + '.join(schema.natural_key)} are handled as: {schema.duplicate_strategy.value}\n")

    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(schema.columns)
    writer.writerow([schema.template_example.get(c, "") for c in schema.columns])
    return buf.getvalue()
