"""Pydantic schemas for bulk import results."""
from pydantic import BaseModel, Field


class ImportIssue(BaseModel):
    """One error or warning, pinned to the spreadsheet row a human would see."""

    row: int
    field: str | None = None
    message: str


class ImportSummary(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    duplicates: int = 0
    failed_rows: int = 0
    processing_time_ms: int = 0


class ImportResult(BaseModel):
    success: bool
    message: str
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportIssue] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)


class SchemaInfo(BaseModel):
    id: str
    name: str
    description: str
    table: str
    duplicate_strategy: str
    batch_size: int
    required_fields: list[str]


class ImportPreview(BaseModel):
    """The first rows of an upload, as parsed, before any validation."""

    headers: list[str]
    rows: list[dict[str, str]]
    total_rows: int
    missing_columns: list[str] = Field(default_factory=list)
