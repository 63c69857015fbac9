import httpx
import pytest


@pytest.mark.asyncio
async def test_health_endpoint_returns_200(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_endpoint_has_required_fields(client):
    response = await client.get("/api/v1/health")
    data = response.json()
    assert "status" in data
    assert "drafts_service" in data
    assert "timestamp" in data
    assert "environment" in data
    assert "version" in data


@pytest.mark.asyncio
async def test_health_endpoint_reports_version(client):
    response = await client.get("/api/v1/health")
    data = response.json()
    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_health_degraded_when_drafts_service_down(client, drafts_client):
    drafts_client.active_batches.side_effect = httpx.ConnectError("refused")
    response = await client.get("/api/v1/health")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["drafts_service"] == "unhealthy"


@pytest.mark.asyncio
async def test_request_id_echoed(client):
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-42"})
    assert response.headers["X-Request-ID"] == "trace-42"

    response = await client.get("/api/v1/health")
    assert len(response.headers["X-Request-ID"]) == 8
