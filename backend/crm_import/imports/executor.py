"""Import executor: batched commit of prepared rows against a Record Store.

Per row: prepare (transform, rules, alias recovery, auto-fill) -> dispatch by
table -> duplicate strategy -> insert/update. Nothing a row raises escapes
its row; only an unknown schema aborts the call.

Every row ends in exactly one of imported / updated / skipped / failed, so
imported + updated + skipped + summary.failed_rows == summary.total_rows.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from crm_import.core.config import settings
from crm_import.imports.errors import DuplicateRecordError
from crm_import.imports.locks import KeyLockManager, import_locks
from crm_import.imports.parser import Row
from crm_import.imports.registry import DuplicateStrategy, ImportSchema, SchemaRegistry
from crm_import.imports.report import BatchResult, ReportBuilder, RowAction
from crm_import.imports.store import ActivityLogger, RecordStore
from crm_import.imports.transformer import RowTransformer
from crm_import.imports.transforms import is_truthy
from crm_import.imports.validation import (
    PreparedRow,
    header_failure,
    header_issues,
    issues,
    prepare_row,
    row_number,
)
from crm_import.imports.validator import is_empty
from crm_import.schemas.imports import ImportIssue, ImportResult

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

JOB_DEFAULTS = {
    "value": 0,
    "stage": "backlog",
    "project_status": "to_be_started",
    "priority": "medium",
}


@dataclass
class _ImportRun:
    """State shared by the batches of one execute_import call."""

    schema: ImportSchema
    accounts: dict[str, Any] = field(default_factory=dict)  # account name -> id


class ImportExecutor:
    def __init__(
        self,
        store: RecordStore,
        activity: ActivityLogger,
        registry: SchemaRegistry,
        transformer: RowTransformer,
        error_rate_threshold: float | None = None,
        max_concurrent_batches: int | None = None,
        locks: KeyLockManager | None = None,
    ):
        self.store = store
        self.activity = activity
        self.registry = registry
        self.transformer = transformer
        self.error_rate_threshold = (
            error_rate_threshold if error_rate_threshold is not None else settings.IMPORT_ERROR_RATE_THRESHOLD
        )
        self.max_concurrent_batches = max(
            1, max_concurrent_batches if max_concurrent_batches is not None else settings.IMPORT_MAX_CONCURRENT_BATCHES
        )
        self.locks = locks if locks is not None else import_locks

    # ─── Entry point ───

    async def execute_import(self, rows: list[Row], schema_name: str) -> ImportResult:
        """Commit `rows` through the named schema.

        Raises:
            SchemaNotFoundError: unknown schema name.
        """
        schema = self.registry.get(schema_name)
        started = time.monotonic()
        column_errors, column_warnings = header_issues(rows, schema, self.transformer)
        if column_errors:
            logger.warning("execute_import[%s]: %s", schema_name, column_errors[0].message)
            return header_failure(rows, column_errors, column_warnings, started)

        run = _ImportRun(schema=schema)
        report = ReportBuilder(total_rows=len(rows))
        size = schema.batch_size
        batches = [(i // size, i, rows[i:i + size]) for i in range(0, len(rows), size)]
        logger.info(
            "execute_import[%s]: %d rows in %d batches of %d", schema_name, len(rows), len(batches), size,
        )

        if self.max_concurrent_batches == 1:
            for index, offset, batch in batches:
                report.add(await self._process_batch(run, index, offset, batch))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrent_batches)

            async def bounded(index: int, offset: int, batch: list[Row]) -> BatchResult:
                async with semaphore:
                    return await self._process_batch(run, index, offset, batch)

            for result in await asyncio.gather(*(bounded(*b) for b in batches)):
                report.add(result)

        imported = report.count(RowAction.imported)
        updated = report.count(RowAction.updated)
        skipped = report.count(RowAction.skipped)
        failed = report.failed_rows

        await self._log_activity(schema_name, imported, updated, skipped, failed, sum(len(b.errors) for b in report.batches))

        if not rows:
            return report.build(success=False, message="No data rows to import.")

        message = f"Import completed. {imported} records imported, {updated} updated, {skipped} skipped."
        if failed:
            message += f" {failed} rows failed."
        success = failed < len(rows) * self.error_rate_threshold
        logger.info("execute_import[%s]: %s (success=%s)", schema_name, message, success)
        return report.build(success=success, message=message)

    async def _log_activity(self, schema_name: str, imported: int, updated: int, skipped: int, failed: int, errors: int) -> None:
        try:
            await self.activity.log(
                "system",
                "import",
                f"{schema_name}_import_completed",
                {
                    "schema": schema_name,
                    "imported": imported,
                    "updated": updated,
                    "skipped": skipped,
                    "failed_rows": failed,
                    "errors": errors,
                },
            )
        except Exception as exc:
            logger.warning("Activity logging failed for %s import: %s", schema_name, exc)

    # ─── Batches ───

    def _handler(self, table: str) -> Callable[[_ImportRun, PreparedRow, BatchResult], Awaitable[RowAction]]:
        if table == "jobs":
            return self._import_job
        return self._import_record

    async def _process_batch(self, run: _ImportRun, index: int, offset: int, batch: list[Row]) -> BatchResult:
        result = BatchResult(index=index)
        handler = self._handler(run.schema.table)

        for i, row in enumerate(batch):
            number = row_number(offset + i)
            try:
                prepared = prepare_row(number, row, run.schema, self.transformer)
                result.warnings.extend(issues(number, prepared.warnings))
                if not prepared.is_valid:
                    for field_name, message in prepared.errors:
                        result.fail(number, message, field_name)
                    continue

                action = await handler(run, prepared, result)
                if action in (RowAction.skipped, RowAction.updated):
                    result.duplicates += 1
                result.record(number, action)
            except DuplicateRecordError as exc:
                result.duplicates += 1
                result.fail(number, str(exc), exc.field)
            except Exception as exc:
                logger.warning("Row %d of %s import failed: %s", number, run.schema.table, exc)
                result.fail(number, str(exc) or exc.__class__.__name__)

        try:
            await self.store.commit()
        except Exception as exc:
            logger.error("Commit of batch %d (%s) failed: %s", index, run.schema.table, exc)
            result.fail_committed(f"Batch commit failed: {exc}")
            # accounts created in this batch were rolled back with it
            run.accounts.clear()
        else:
            logger.debug(
                "Batch %d committed: %d imported, %d updated, %d skipped, %d failed",
                index, result.count(RowAction.imported), result.count(RowAction.updated),
                result.count(RowAction.skipped), result.count(RowAction.failed),
            )
        return result

    # ─── Duplicate strategy ───

    @staticmethod
    def _lock_key(table: str, key: dict[str, Any]) -> tuple:
        return (table,) + tuple(sorted((k, str(v).strip()) for k, v in key.items()))

    async def _upsert(
        self,
        table: str,
        key: dict[str, Any],
        fields: dict[str, Any],
        strategy: DuplicateStrategy,
        defaults: dict[str, Any] | None = None,
        insert_only: set[str] | frozenset[str] = frozenset(),
    ) -> RowAction:
        async with self.locks.acquire(self._lock_key(table, key)):
            existing = await self.store.find_one(table, key)
            if existing is not None:
                if strategy == DuplicateStrategy.skip:
                    return RowAction.skipped
                if strategy == DuplicateStrategy.error:
                    raise DuplicateRecordError(table, key, field=next(iter(key)))
                changes = {k: v for k, v in fields.items() if k not in insert_only and not is_empty(v)}
                await self.store.update(table, existing["id"], changes)
                return RowAction.updated

            record = dict(defaults or {})
            record.update({k: v for k, v in fields.items() if v is not None})
            await self.store.insert(table, record)
            return RowAction.imported

    # ─── Entity handlers ───

    async def _import_record(self, run: _ImportRun, prepared: PreparedRow, result: BatchResult) -> RowAction:
        schema = run.schema
        values = prepared.values
        fields = {c: values[c] for c in schema.columns if c in values}
        key = {k: values[k] for k in schema.natural_key}
        return await self._upsert(schema.table, key, fields, schema.duplicate_strategy, insert_only=prepared.filled)

    async def _resolve_account(self, run: _ImportRun, name: str, short_code: str, result: BatchResult, number: int) -> Any:
        """Id of the account called `name`, creating it when absent."""
        if name in run.accounts:
            return run.accounts[name]
        async with self.locks.acquire(self._lock_key("accounts", {"name": name})):
            if name in run.accounts:
                return run.accounts[name]
            existing = await self.store.find_one("accounts", {"name": name})
            if existing is not None:
                account_id = existing["id"]
            else:
                account_id = await self.store.insert("accounts", self.transformer.account_defaults(name, short_code))
                logger.info("Created account %r (%s) while importing jobs", name, account_id)
                result.warnings.append(
                    ImportIssue(row=number, field="client_name", message=f"Account '{name}' did not exist and was created")
                )
            run.accounts[name] = account_id
            return account_id

    @staticmethod
    def _unique_id(values: dict[str, Any]) -> str:
        return str(values.get("unique_id") or values.get("id") or "").strip()

    @classmethod
    def _job_code(cls, values: dict[str, Any], number: int) -> str:
        """Original unique id, else one derived from the row (stable per row)."""
        unique_id = cls._unique_id(values)
        if unique_id:
            return unique_id
        prefix = values.get("client_short") or _NON_ALNUM.sub("", str(values.get("client_name", "")))[:6]
        suffix = values.get("project_short") or _NON_ALNUM.sub("", str(values.get("name", "")))[:4]
        return f"{prefix}{suffix}{number:03d}".upper()

    def _job_fields(self, prepared: PreparedRow, account_id: Any) -> dict[str, Any]:
        values = prepared.values
        fields: dict[str, Any] = {
            "job_code": self._job_code(values, prepared.number),
            "name": values.get("project_name") or values["name"],
            "account_id": account_id,
            "project_start_date": values.get("start_quarter") or None,
            "project_end_date": values.get("end_quarter") or None,
            "notes": f"Imported from CSV. Original ID: {self._unique_id(values)}",
        }
        if not is_empty(values.get("value")):
            fields["value"] = float(str(values["value"]).replace(",", ""))
        if not is_empty(values.get("is_new_business")):
            fields["stage"] = "proposal_preparation" if is_truthy(values["is_new_business"]) else "backlog"
        return fields

    async def _import_job(self, run: _ImportRun, prepared: PreparedRow, result: BatchResult) -> RowAction:
        values = prepared.values
        _, short_code = self.transformer.short_code(values)
        account_id = await self._resolve_account(run, values["client_name"], short_code, result, prepared.number)
        fields = self._job_fields(prepared, account_id)
        key = {"name": fields["name"], "account_id": account_id}
        # generated code and note only describe a fresh insert
        insert_only = frozenset() if self._unique_id(values) else frozenset({"job_code", "notes"})
        return await self._upsert(
            "jobs", key, fields, run.schema.duplicate_strategy, defaults=JOB_DEFAULTS, insert_only=insert_only,
        )
