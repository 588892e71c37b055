"""CSV bulk import endpoints for client accounts, project jobs and team members."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse

from crm_import.core.config import settings
from crm_import.core.deps import get_executor, get_registry, get_transformer
from crm_import.imports.errors import FileValidationError, SchemaNotFoundError
from crm_import.imports.executor import ImportExecutor
from crm_import.imports.parser import Row, read_upload, size_error_message
from crm_import.imports.registry import ImportSchema, SchemaRegistry
from crm_import.imports.templates import render_template, template_filename
from crm_import.imports.transformer import RowTransformer
from crm_import.imports.validation import preview_data, validate_data
from crm_import.schemas.imports import ImportPreview, ImportResult, SchemaInfo

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ───

def _schema_or_404(registry: SchemaRegistry, schema_name: str) -> ImportSchema:
    try:
        return registry.get(schema_name)
    except SchemaNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _too_large(max_bytes: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=[size_error_message(max_bytes)])


async def _read_rows(file: UploadFile) -> list[Row]:
    max_bytes = settings.IMPORT_MAX_FILE_BYTES
    if file.size is not None and file.size > max_bytes:
        raise _too_large(max_bytes)
    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise _too_large(max_bytes)
    try:
        return read_upload(content, filename=file.filename, content_type=file.content_type)
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors)


# ─── GET /import/schemas ───

@router.get("/schemas", response_model=list[SchemaInfo], summary="List available import schemas")
async def list_schemas(registry: Annotated[SchemaRegistry, Depends(get_registry)]):
    items = []
    for key in registry.keys():
        schema = registry.get(key)
        items.append(SchemaInfo(
            id=key,
            name=schema.name,
            description=schema.description,
            table=schema.table,
            duplicate_strategy=schema.duplicate_strategy.value,
            batch_size=schema.batch_size,
            required_fields=schema.required_fields,
        ))
    return items


# ─── GET /import/{schema}/template ───

@router.get("/{schema_name}/template", response_class=PlainTextResponse, summary="Download a sample CSV")
async def download_template(
    schema_name: str,
    registry: Annotated[SchemaRegistry, Depends(get_registry)],
):
    schema = _schema_or_404(registry, schema_name)
    return PlainTextResponse(
        render_template(schema),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{template_filename(schema_name)}"'},
    )


# ─── POST /import/{schema}/preview ───

@router.post("/{schema_name}/preview", response_model=ImportPreview, summary="Show the first rows of a CSV file")
async def preview_file(
    schema_name: str,
    registry: Annotated[SchemaRegistry, Depends(get_registry)],
    transformer: Annotated[RowTransformer, Depends(get_transformer)],
    file: UploadFile = File(...),
    limit: int = Query(default=10, ge=1, le=100, description="Number of rows to return"),
):
    _schema_or_404(registry, schema_name)
    rows = await _read_rows(file)
    return preview_data(rows, schema_name, registry, transformer, limit=limit)


# ─── POST /import/{schema}/validate ───

@router.post("/{schema_name}/validate", response_model=ImportResult, summary="Dry-run a CSV file without writing")
async def validate_file(
    schema_name: str,
    registry: Annotated[SchemaRegistry, Depends(get_registry)],
    transformer: Annotated[RowTransformer, Depends(get_transformer)],
    file: UploadFile = File(...),
):
    _schema_or_404(registry, schema_name)
    rows = await _read_rows(file)
    return validate_data(rows, schema_name, registry, transformer)


# ─── POST /import/{schema}/execute ───

@router.post("/{schema_name}/execute", response_model=ImportResult, summary="Import a CSV file")
async def execute_file(
    schema_name: str,
    registry: Annotated[SchemaRegistry, Depends(get_registry)],
    executor: Annotated[ImportExecutor, Depends(get_executor)],
    file: UploadFile = File(...),
):
    _schema_or_404(registry, schema_name)
    rows = await _read_rows(file)
    logger.info("Import %s: %s (%d rows)", schema_name, file.filename, len(rows))
    return await executor.execute_import(rows, schema_name)
