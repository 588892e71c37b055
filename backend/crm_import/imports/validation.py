"""Validation pass: dry-run every row, touching no storage."""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from crm_import.imports.parser import Row
from crm_import.imports.registry import DuplicateStrategy, ImportSchema, RuleKind, SchemaRegistry
from crm_import.imports.transformer import Finding, RowTransformer
from crm_import.imports.validator import validate_field
from crm_import.schemas.imports import ImportIssue, ImportPreview, ImportResult, ImportSummary

logger = logging.getLogger(__name__)


def row_number(index: int) -> int:
    """Spreadsheet line for the data row at `index` (header is line 1)."""
    return index + 2


@dataclass
class PreparedRow:
    number: int
    raw: Row
    values: dict[str, Any]
    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    filled: set[str] = field(default_factory=set)  # fields set by auto-fill, not by the file

    @property
    def is_valid(self) -> bool:
        return not self.errors


def prepare_row(number: int, row: Row, schema: ImportSchema, transformer: RowTransformer) -> PreparedRow:
    """transform -> rules (with alias recovery on required) -> auto-fill."""
    outcome = transformer.transform(row, schema)
    prepared = PreparedRow(number=number, raw=row, values=outcome.values, warnings=list(outcome.warnings))

    for rule in schema.rules:
        if validate_field(prepared.values.get(rule.field), rule):
            continue
        if rule.kind == RuleKind.required:
            recovered = transformer.recover(rule.field, row, schema)
            if recovered is not None:
                alias, value = recovered
                prepared.values[rule.field] = value
                prepared.warnings.append((rule.field, f"'{rule.field}' recovered from column '{alias}'"))
                continue
        prepared.errors.append((rule.field, rule.message))

    if prepared.is_valid:
        filled = transformer.auto_fill(prepared.values, schema)
        prepared.filled.update(f for f, _ in filled if f)
        prepared.warnings.extend(filled)
    return prepared


def natural_key(values: dict[str, Any], schema: ImportSchema) -> tuple[str, ...] | None:
    """Stripped natural key, or None when any part is blank.

    Matches the store's exact-value lookup, so "Acme" and "ACME" are distinct
    keys here just as they are on execute.
    """
    parts = []
    for field_name in schema.natural_key:
        value = values.get(field_name)
        if value is None or str(value).strip() == "":
            return None
        parts.append(str(value).strip())
    return tuple(parts)


def issues(number: int, findings: Iterable[Finding]) -> list[ImportIssue]:
    return [ImportIssue(row=number, field=f, message=m) for f, m in findings]


# ─── Header checks ───

HEADER_ROW = 1


def headers_of(rows: list[Row]) -> list[str]:
    """Column names in first-seen order across `rows`."""
    return list(dict.fromkeys(k for row in rows for k in row))


def missing_columns(headers: Iterable[str], schema: ImportSchema, transformer: RowTransformer) -> list[str]:
    """Required fields with neither their own column nor an alias column.

    Aliases match case-insensitively, as alternative-field recovery does.
    """
    headers = [h.strip() for h in headers]
    lowered = {h.lower() for h in headers}
    missing = []
    for field_name in schema.required_fields:
        if field_name in headers:
            continue
        aliases = transformer.tables.aliases_for(schema.table, field_name)
        if not any(a.lower() in lowered for a in aliases):
            missing.append(field_name)
    return missing


def header_issues(
    rows: list[Row], schema: ImportSchema, transformer: RowTransformer,
) -> tuple[list[ImportIssue], list[ImportIssue]]:
    """(errors, warnings) for required columns absent from the whole file."""
    if not rows:
        return [], []
    missing = missing_columns(headers_of(rows), schema, transformer)
    if not missing:
        return [], []
    errors = [ImportIssue(row=HEADER_ROW, message=f"Missing required columns: {', '.join(missing)}")]
    warnings = []
    for field_name in missing:
        aliases = transformer.tables.aliases_for(schema.table, field_name)
        if aliases:
            warnings.append(ImportIssue(
                row=HEADER_ROW,
                field=field_name,
                message=f'Tip: Required fields can have alternative names like "{aliases[0]}" instead of "{field_name}"',
            ))
            break
    return errors, warnings


def header_failure(rows: list[Row], errors: list[ImportIssue], warnings: list[ImportIssue], started: float) -> ImportResult:
    """Result for a file rejected on its header: every row counts as failed."""
    return ImportResult(
        success=False,
        message=errors[0].message,
        errors=errors,
        warnings=warnings,
        summary=ImportSummary(
            total_rows=len(rows),
            failed_rows=len(rows),
            processing_time_ms=int((time.monotonic() - started) * 1000),
        ),
    )


# ─── Preview ───

def preview_data(
    rows: list[Row],
    schema_name: str,
    registry: SchemaRegistry,
    transformer: RowTransformer,
    limit: int = 10,
) -> ImportPreview:
    """First `limit` rows as parsed, plus the header check.

    Raises:
        SchemaNotFoundError: unknown schema name.
    """
    schema = registry.get(schema_name)
    headers = headers_of(rows)
    return ImportPreview(
        headers=headers,
        rows=rows[:max(0, limit)],
        total_rows=len(rows),
        missing_columns=missing_columns(headers, schema, transformer) if rows else [],
    )


def validate_data(
    rows: list[Row],
    schema_name: str,
    registry: SchemaRegistry,
    transformer: RowTransformer,
) -> ImportResult:
    """Readiness report for `rows` against the named schema.

    Raises:
        SchemaNotFoundError: unknown schema name.
    """
    schema = registry.get(schema_name)
    started = time.monotonic()

    column_errors, column_warnings = header_issues(rows, schema, transformer)
    if column_errors:
        logger.info("validate_data[%s]: %s", schema_name, column_errors[0].message)
        return header_failure(rows, column_errors, column_warnings, started)

    errors: list[ImportIssue] = []
    warnings: list[ImportIssue] = []
    valid_rows = duplicates = failed_rows = 0
    seen_keys: dict[tuple[str, ...], int] = {}

    for index, row in enumerate(rows):
        prepared = prepare_row(row_number(index), row, schema, transformer)

        if prepared.is_valid:
            key = natural_key(prepared.values, schema)
            first = seen_keys.get(key) if key else None
            if first is not None:
                duplicates += 1
                if schema.duplicate_strategy == DuplicateStrategy.error:
                    prepared.errors.append((None, f"Duplicate record detected (same as row {first})"))
                else:
                    verb = "skipped" if schema.duplicate_strategy == DuplicateStrategy.skip else "updated"
                    prepared.warnings.append((None, f"Duplicate of row {first}; record will be {verb}"))
            elif key:
                seen_keys[key] = prepared.number

        errors.extend(issues(prepared.number, prepared.errors))
        warnings.extend(issues(prepared.number, prepared.warnings))
        if prepared.is_valid:
            valid_rows += 1
        else:
            failed_rows += 1

    if errors:
        message = f"Validation failed with {len(errors)} errors."
    else:
        message = f"Validation completed successfully. {valid_rows} rows ready for import."
    logger.info(
        "validate_data[%s]: %d rows, %d valid, %d errors, %d warnings",
        schema_name, len(rows), valid_rows, len(errors), len(warnings),
    )

    return ImportResult(
        success=not errors,
        message=message,
        skipped=duplicates if schema.duplicate_strategy == DuplicateStrategy.skip else 0,
        errors=errors,
        warnings=warnings,
        summary=ImportSummary(
            total_rows=len(rows),
            valid_rows=valid_rows,
            duplicates=duplicates,
            failed_rows=failed_rows,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        ),
    )
