"""Aggregation of per-batch outcomes into the final ImportResult."""
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field

from crm_import.schemas.imports import ImportIssue, ImportResult, ImportSummary


class RowAction(str, enum.Enum):
    imported = "imported"
    updated = "updated"
    skipped = "skipped"
    failed = "failed"


@dataclass
class BatchResult:
    index: int
    outcomes: dict[int, RowAction] = field(default_factory=dict)   # row number -> action
    duplicates: int = 0
    errors: list[ImportIssue] = field(default_factory=list)
    warnings: list[ImportIssue] = field(default_factory=list)

    def record(self, row: int, action: RowAction) -> None:
        self.outcomes[row] = action

    def fail(self, row: int, message: str, field_name: str | None = None) -> None:
        self.errors.append(ImportIssue(row=row, field=field_name, message=message))
        self.outcomes[row] = RowAction.failed

    def count(self, action: RowAction) -> int:
        return sum(1 for a in self.outcomes.values() if a == action)

    def fail_committed(self, message: str) -> None:
        """Turn every imported/updated row of this batch into a failure."""
        for row, action in sorted(self.outcomes.items()):
            if action in (RowAction.imported, RowAction.updated):
                self.fail(row, message)


class ReportBuilder:
    def __init__(self, total_rows: int):
        self.total_rows = total_rows
        self.started = time.monotonic()
        self.batches: list[BatchResult] = []

    def add(self, batch: BatchResult) -> None:
        self.batches.append(batch)

    def _ordered(self) -> list[BatchResult]:
        return sorted(self.batches, key=lambda b: b.index)

    def count(self, action: RowAction) -> int:
        return sum(b.count(action) for b in self.batches)

    @property
    def failed_rows(self) -> int:
        return self.count(RowAction.failed)

    def build(self, success: bool, message: str) -> ImportResult:
        batches = self._ordered()
        imported = self.count(RowAction.imported)
        updated = self.count(RowAction.updated)
        return ImportResult(
            success=success,
            message=message,
            imported=imported,
            updated=updated,
            skipped=self.count(RowAction.skipped),
            errors=[e for b in batches for e in b.errors],
            warnings=[w for b in batches for w in b.warnings],
            summary=ImportSummary(
                total_rows=self.total_rows,
                valid_rows=imported + updated,
                duplicates=sum(b.duplicates for b in batches),
                failed_rows=self.failed_rows,
                processing_time_ms=int((time.monotonic() - self.started) * 1000),
            ),
        )
