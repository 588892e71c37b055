"""Tests for the health endpoint."""
import pytest
from httpx import AsyncClient, ASGITransport

from crm_import.main import app


@pytest.mark.asyncio
async def test_health_returns_200():
    """GET /health should return HTTP 200 with status ok."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
