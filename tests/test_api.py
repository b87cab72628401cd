"""Tests for service-level endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "ok"
    assert data["storage"] == "ok"
    assert data["status"] in ("healthy", "degraded")


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "Quadriparlanti API"


@pytest.mark.asyncio
async def test_info_endpoint(client: AsyncClient):
    response = await client.get("/v1/info")
    assert response.status_code == 200
    data = response.json()
    assert data["default_locale"] == "it"
    assert "pending_review" in data["work_statuses"]
    assert {loc["code"] for loc in data["supported_locales"]} == {"it", "en"}


@pytest.mark.asyncio
async def test_protected_route_without_auth(client: AsyncClient):
    response = await client.get("/v1/works")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_protected_route_with_malformed_key(client: AsyncClient):
    response = await client.get("/v1/works", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_route_rejects_teacher(client: AsyncClient, teacher_headers: dict):
    response = await client.get("/v1/admin/review-queue", headers=teacher_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"


@pytest.mark.asyncio
async def test_x_api_key_header_is_accepted(client: AsyncClient, teacher_headers: dict):
    key = teacher_headers["Authorization"].split(" ", 1)[1]
    response = await client.get("/v1/auth/me", headers={"X-API-Key": key})
    assert response.status_code == 200
    assert response.json()["role"] == "docente"
