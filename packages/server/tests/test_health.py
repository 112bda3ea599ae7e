"""
Health, readiness and root endpoint tests.
"""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    """Health endpoint should return status ok without touching the stores."""
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_database_check(client, relational_store):
    response = await client.get("/api/database-check")
    assert response.status_code == 200
    assert response.json() == {"status": "connected"}
    assert relational_store.calls == ["ping"]


@pytest.mark.asyncio
async def test_database_check_failure(client, relational_store):
    relational_store.fail_on.add("ping")
    response = await client.get("/api/database-check")
    assert response.status_code == 500
    assert response.json()["code"] == "store_error"


@pytest.mark.asyncio
async def test_root(client):
    """Root should describe the service and list endpoints."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "/api/health" in data["endpoints"]
