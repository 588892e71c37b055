"""Tests for the /api/v1/import endpoints.

The executor dependency is overridden with one backed by the in-memory
FakeRecordStore, so no database is needed.
"""
import io
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException, UploadFile
from httpx import AsyncClient, ASGITransport

from crm_import.api.v1.import_routes import _read_rows
from crm_import.core.config import settings
from crm_import.core.deps import get_executor, get_registry, get_transformer
from crm_import.imports.executor import ImportExecutor
from crm_import.main import app

from conftest import FakeRecordStore

CLIENTS_CSV = b"name,industry_group\nAcme Corporation,DXP\nGlobex,\n"


@pytest.fixture
def fake_store():
    store = FakeRecordStore()

    def _executor():
        return ImportExecutor(
            store=store,
            activity=AsyncMock(),
            registry=get_registry(),
            transformer=get_transformer(),
            max_concurrent_batches=1,
        )

    app.dependency_overrides[get_executor] = _executor
    yield store
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ─── Schemas and templates ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_schemas():
    async with _client() as client:
        response = await client.get("/api/v1/import/schemas")
    assert response.status_code == 200
    data = response.json()
    assert [s["id"] for s in data] == ["clients", "projects", "users"]
    assert data[2]["duplicate_strategy"] == "update"
    assert data[1]["required_fields"] == ["name", "client_name"]


@pytest.mark.asyncio
async def test_download_template():
    async with _client() as client:
        response = await client.get("/api/v1/import/users/template")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="users_import_template.csv"' in response.headers["content-disposition"]
    assert "name,email,role,industry_groups" in response.text


@pytest.mark.asyncio
async def test_template_for_unknown_schema_is_404():
    async with _client() as client:
        response = await client.get("/api/v1/import/invoices/template")
    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown schema: invoices"


# ─── Validate ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_validate_reports_without_writing(fake_store):
    files = {"file": ("clients.csv", CLIENTS_CSV, "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/clients/validate", files=files)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["summary"]["total_rows"] == 2
    assert data["summary"]["valid_rows"] == 2
    assert fake_store.rows("accounts") == []


@pytest.mark.asyncio
async def test_validate_rejects_non_csv_upload():
    files = {"file": ("invoice.pdf", b"%PDF-1.7", "application/pdf")}
    async with _client() as client:
        response = await client.post("/api/v1/import/clients/validate", files=files)
    assert response.status_code == 422
    assert response.json()["detail"] == ["Unsupported file format. Please upload a CSV (comma-separated) file."]


# ─── Execute ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_execute_imports_rows(fake_store):
    files = {"file": ("clients.csv", CLIENTS_CSV, "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/clients/execute", files=files)
    assert response.status_code == 200
    data = response.json()
    assert data["imported"] == 2
    assert data["message"] == "Import completed. 2 records imported, 0 updated, 0 skipped."
    assert sorted(a["name"] for a in fake_store.rows("accounts")) == ["Acme Corporation", "Globex"]


@pytest.mark.asyncio
async def test_execute_unknown_schema_is_404(fake_store):
    files = {"file": ("x.csv", b"name\nAcme\n", "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/vendors/execute", files=files)
    assert response.status_code == 404
    assert fake_store.commits == 0


@pytest.mark.asyncio
async def test_execute_reports_missing_required_columns(fake_store):
    files = {"file": ("projects.csv", b"project_name,notes\nWebsite Redesign,rush\n", "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/projects/execute", files=files)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert [e["message"] for e in data["errors"]] == ["Missing required columns: client_name"]
    assert data["summary"]["failed_rows"] == 1
    assert fake_store.rows("jobs") == []
    assert fake_store.commits == 0


# ─── Preview ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_preview_returns_first_rows():
    content = b"name,industry\n" + b"".join(f"Company {i},Retail\n".encode() for i in range(15))
    files = {"file": ("clients.csv", content, "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/clients/preview", files=files)
    assert response.status_code == 200
    data = response.json()
    assert data["headers"] == ["name", "industry"]
    assert data["total_rows"] == 15
    assert len(data["rows"]) == 10
    assert data["rows"][0] == {"name": "Company 0", "industry": "Retail"}
    assert data["missing_columns"] == []


@pytest.mark.asyncio
async def test_preview_limit_and_missing_columns():
    files = {"file": ("users.csv", b"full_name\nJane\nSam\n", "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/users/preview?limit=1", files=files)
    data = response.json()
    assert data["rows"] == [{"full_name": "Jane"}]
    assert data["missing_columns"] == ["email"]


# ─── Upload size ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_oversized_upload_rejected_before_parsing(fake_store, monkeypatch):
    monkeypatch.setattr(settings, "IMPORT_MAX_FILE_BYTES", 64)
    files = {"file": ("clients.csv", b"name\n" + b"Acme Corporation\n" * 20, "text/csv")}
    async with _client() as client:
        response = await client.post("/api/v1/import/clients/execute", files=files)
    assert response.status_code == 422
    assert response.json()["detail"] == ["File size exceeds 64 bytes limit"]
    assert fake_store.commits == 0


@pytest.mark.asyncio
async def test_upload_without_declared_size_is_read_only_past_the_limit(monkeypatch):
    monkeypatch.setattr(settings, "IMPORT_MAX_FILE_BYTES", 64)
    upload = UploadFile(file=io.BytesIO(b"x" * 10_000), filename="clients.csv")
    with pytest.raises(HTTPException) as exc_info:
        await _read_rows(upload)
    assert exc_info.value.status_code == 422
    assert upload.file.tell() == 65
